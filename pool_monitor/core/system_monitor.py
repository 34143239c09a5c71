"""Process resource monitoring using psutil."""
import psutil
import logging
from typing import Dict, Any
from datetime import datetime

from ..config.constants import MonitoringThresholds


class SystemMonitor:
    """Monitor the monitor's own process resources."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.process = psutil.Process()
        self.start_time = datetime.now()

    def get_process_stats(self) -> Dict[str, Any]:
        """Memory, CPU and thread usage of this process."""
        try:
            memory_mb = self.process.memory_info().rss / 1024 / 1024
            uptime = datetime.now() - self.start_time

            return {
                'memory_mb': round(memory_mb, 2),
                'memory_percent': round(self.process.memory_percent(), 2),
                'cpu_percent': round(self.process.cpu_percent(), 2),
                'num_threads': self.process.num_threads(),
                'uptime_seconds': int(uptime.total_seconds())
            }

        except psutil.Error as e:
            self.logger.error(f"Error getting process stats: {e}")
            return {}

    def check_resource_health(self) -> Dict[str, Any]:
        """Check if process resources are within healthy limits."""
        health_status = {
            'healthy': True,
            'warnings': []
        }

        try:
            memory_mb = self.process.memory_info().rss / 1024 / 1024
            if memory_mb > MonitoringThresholds.MEMORY_WARNING_THRESHOLD_MB:
                health_status['warnings'].append(f"Memory usage high: {memory_mb:.1f}MB")

            cpu_percent = self.process.cpu_percent()
            if cpu_percent > MonitoringThresholds.CPU_WARNING_THRESHOLD_PERCENT:
                health_status['warnings'].append(f"CPU usage high: {cpu_percent:.1f}%")

        except psutil.Error as e:
            health_status['healthy'] = False
            health_status['warnings'].append(f"Failed to check resources: {e}")

        return health_status
