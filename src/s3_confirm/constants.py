#!/usr/bin/env python3
"""
Constants for s3-confirm.

Centralized defaults shared by the managers, the facade and the CLI.
"""

# Convergence polling
DEFAULT_OPERATION_TIMEOUT = 60.0  # seconds to wait for a mutation to become visible
DEFAULT_POLL_MIN_INTERVAL = 1.0
DEFAULT_POLL_MAX_INTERVAL = 5.0

# Batch delete
MAX_BATCH_DELETE_ITEMS = 1000  # DeleteObjects request limit
DEFAULT_CONVERGENCE_CONCURRENCY = 8

# Upload size limits
SINGLE_PUT_MAX_BYTES = 5 * 1024 * 1024 * 1024  # 5 GiB single-request ceiling
MULTIPART_THRESHOLD_BYTES = 100 * 1024 * 1024
MULTIPART_MAX_CONCURRENT_PARTS = 5
MULTIPART_QUEUE_SIZE = 10

# Streaming
DOWNLOAD_CHUNK_SIZE = 1024 * 1024

# Transport
DEFAULT_REGION = "us-east-1"
DEFAULT_S3_MAX_POOL_CONNECTIONS = 50
DEFAULT_S3_READ_TIMEOUT = 300
DEFAULT_S3_CONNECT_TIMEOUT = 120
