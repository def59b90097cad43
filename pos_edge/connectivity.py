import logging
import socket
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

logger = logging.getLogger(__name__)


class ConnectivityProbe:
    """Checks whether the network is reachable by resolving a public host.

    ``getaddrinfo`` has no timeout of its own, so the lookup runs on a worker
    thread and the caller waits at most ``timeout`` seconds for it.
    """

    def __init__(self, host='google.com', timeout=3.0):
        self.host = host
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='dns-probe')

    def is_online(self):
        try:
            future = self._executor.submit(socket.getaddrinfo, self.host, None)
            future.result(timeout=self.timeout)
            return True
        except FutureTimeout:
            logger.info(f"Connectivity probe timed out resolving {self.host}")
            return False
        except Exception as e:
            logger.info(f"Connectivity probe failed for {self.host}: {e}")
            return False
