"""
Progress estimation service.

Derives speed and ETA from the last two progress samples of a task.
"""
from ..models import ProgressSample, ProgressEstimate


class ProgressEstimator:
    """
    Last-sample speed/ETA estimator.
    
    No smoothing is applied, so irregular callback timing shows up
    directly in the estimates.
    """
    
    def estimate(
        self,
        previous: ProgressSample,
        percent: float,
        timestamp: float,
        file_size: int
    ) -> ProgressEstimate:
        """
        Fold a new progress sample into the estimate.
        
        Args:
            previous: Last recorded sample for the task
            percent: Reported progress (0-100)
            timestamp: Monotonic time of the report, in seconds
            file_size: Task file size in bytes
            
        Returns:
            ProgressEstimate carrying the next sample to store
        """
        # Progress never goes backwards while uploading
        percent = min(max(percent, previous.percent), 100.0)
        
        time_diff = timestamp - previous.timestamp
        progress_diff = percent - previous.percent
        
        speed = previous.speed
        time_remaining = None
        
        if time_diff > 0 and progress_diff > 0:
            speed = (progress_diff / 100) * file_size / time_diff
            time_remaining = ((100 - percent) / progress_diff) * time_diff
        
        sample = ProgressSample(percent=percent, timestamp=timestamp, speed=speed)
        return ProgressEstimate(
            progress=int(round(percent)),
            speed=speed,
            time_remaining=time_remaining,
            sample=sample
        )
