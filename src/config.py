"""Configuration settings for the lab run engine."""

import os


def get_api_base_url():
    """Get base URL of the laboratory REST resource store."""
    base_url = os.environ.get("LAB_API_BASE_URL", "http://localhost:3000")
    return base_url.rstrip("/")


def get_api_timeout():
    """Get request timeout (seconds) for calls to the REST resource store."""
    return float(os.environ.get("LAB_API_TIMEOUT", "30"))


def get_orders_resource():
    """Get the collection name used for test orders (older stores use 'test_order')."""
    return os.environ.get("LAB_API_ORDERS_RESOURCE", "test_orders")


def get_redis_host_and_port():
    """Get Redis connection details from environment variables."""
    host = os.environ.get("REDIS_HOST", "localhost")
    port = int(os.environ.get("REDIS_PORT", "6379"))
    return dict(host=host, port=port)


def get_redis_url():
    """Get Redis URL from environment variables."""
    redis_config = get_redis_host_and_port()
    return f"redis://{redis_config['host']}:{redis_config['port']}"


def get_events_channel():
    """Get Redis channel on which test run events are published."""
    return os.environ.get("LAB_RUN_EVENTS_CHANNEL", "lab:test-runs")


def get_api_host_and_port():
    """Get bind address of the lab run API."""
    host = os.environ.get("API_HOST", "localhost")
    port = int(os.environ.get("API_PORT", "8000"))
    return dict(host=host, port=port)


def get_api_url():
    """Get URL of the lab run API itself."""
    api_config = get_api_host_and_port()
    return f"http://{api_config['host']}:{api_config['port']}"
