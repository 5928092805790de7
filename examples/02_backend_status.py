"""
Backend processing - Poll the server until uploaded files are processed
"""
import asyncio
import logging
import sys

from uploadq import UploadQueue, HttpTransport, BackendStatusPoller, FileInfo, UploadConfig, setup_logging


async def main(paths):
    logging.basicConfig(format='%(asctime)s %(name)s %(levelname)s %(message)s')
    setup_logging(logging.INFO)
    
    headers = {'Authorization': 'Bearer <token>'}
    config = UploadConfig(max_concurrent_uploads=2, max_retries=5)
    
    async with HttpTransport("https://api.example.com/client/upload", headers=headers) as transport:
        queue = UploadQueue(transport, config)
        poller = BackendStatusPoller(queue, "https://api.example.com/client/pdfs/{backend_id}/status", headers=headers)
        polling = asyncio.create_task(poller.run(interval=2))
        
        for path in paths:
            queue.add_upload(FileInfo.from_path(path))
        await queue.wait_idle()
        
        # Uploads are done; wait for the backend to finish processing
        while queue.get_uploads_by_status('processing'):
            await asyncio.sleep(1)
        
        await poller.close()
        polling.cancel()
        
        for task in queue.get_uploads():
            print(f"{task.file.name}: {task.status.value} {task.error or ''}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:] or ["document.pdf"]))
