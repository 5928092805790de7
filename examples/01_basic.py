"""
Basic usage - Queue a few documents and watch them upload
"""
import asyncio
import sys

from uploadq import UploadQueue, HttpTransport, FileInfo, format_speed, format_time_remaining


async def main(paths):
    async with HttpTransport("https://api.example.com/client/upload") as transport:
        queue = UploadQueue(transport)
        
        # Print progress as it arrives
        queue.on('progress', lambda task: print(
            f"  {task.file.name}: {task.progress}% "
            f"{format_speed(task.speed)} {format_time_remaining(task.time_remaining)}"
        ))
        queue.on('retrying', lambda task, delay: print(
            f"  {task.file.name}: {task.error}, retrying in {delay / 1000:.1f}s"
        ))
        queue.on('failed', lambda task: print(f"  {task.file.name} failed: {task.error}"))
        
        for path in paths:
            queue.add_upload(FileInfo.from_path(path))
        
        await queue.wait_idle()
        
        stats = queue.get_upload_stats()
        print(f"\nDone: {stats.completed} completed, {stats.processing} processing, {stats.failed} failed")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:] or ["document.pdf"]))
