# data_restore/monitoring.py
import errno
import time
import psutil
import socket
from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry
from prometheus_client.exposition import make_wsgi_app
from wsgiref.simple_server import make_server, WSGIServer
from socketserver import ThreadingMixIn
import threading
import logging

logger = logging.getLogger(__name__)

# Create a threaded WSGI server for the Prometheus metrics
class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """A WSGI server that runs in a separate thread so replay is not blocked."""
    allow_reuse_address = True

class ReplayMonitor:
    def __init__(self, host="127.0.0.1", port=9090):
        self.host = host
        self.port = port
        self.server = None
        self.thread = None

        # Isolated registry so several monitors can coexist (e.g. in tests)
        self.registry = CollectorRegistry()

        self.op_counter = Counter('restore_operations_total', 'Operations replayed', ['op_type', 'status'], registry=self.registry)
        self.block_latency = Histogram('restore_block_latency_seconds', 'Time to replay one block', registry=self.registry)
        self.block_number = Gauge('restore_block_number', 'Next block to replay', registry=self.registry)
        self.account_count = Gauge('restore_account_count', 'Live accounts in the tree', registry=self.registry)
        self.root_mismatches = Counter('restore_root_mismatches_total', 'Blocks whose replayed root differs from the chain', registry=self.registry)
        self.memory_usage = Gauge('system_memory_percent', 'Current memory usage percent', registry=self.registry)

    def start_server(self):
        """Creates and starts the Prometheus HTTP server with retry logic."""
        app = make_wsgi_app(self.registry)

        max_retries = 5
        retry_delay = 2

        for attempt in range(max_retries):
            try:
                self.server = make_server(self.host, self.port, app, ThreadingWSGIServer)
                self.server.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

                self.thread = threading.Thread(target=self.server.serve_forever)
                self.thread.daemon = True
                self.thread.start()
                logger.info(f"Prometheus server started on http://{self.host}:{self.port}")
                return
            except OSError as e:
                if e.errno == errno.EADDRINUSE:
                    if attempt < max_retries - 1:
                        logger.warning(f"Port {self.port} in use, retrying in {retry_delay}s (attempt {attempt+1}/{max_retries})...")
                        time.sleep(retry_delay)
                    else:
                        logger.error(f"Failed to bind to port {self.port} after {max_retries} attempts")
                        raise
                else:
                    raise

    def stop_server(self):
        """Stops the HTTP server."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
        if self.thread:
            self.thread.join(timeout=5)
            self.thread = None
            logger.info("Prometheus server stopped.")

    def update(self, state):
        self.block_number.set(state.block_number)
        self.account_count.set(state.account_count)
        self.memory_usage.set(psutil.virtual_memory().percent)

    def record_op(self, op_type: str, status: str):
        self.op_counter.labels(op_type=op_type, status=status).inc()

    def record_block(self, latency: float):
        self.block_latency.observe(latency)

    def record_root_mismatch(self):
        self.root_mismatches.inc()
