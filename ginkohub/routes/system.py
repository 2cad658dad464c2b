"""
System information routes for the GinkoHub Tools API
"""

import os
import platform
import socket
import time
from collections import Counter

import psutil
from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from ginkohub.config import Config, get_store
from ginkohub.logger import get_logger
from ginkohub.models import StorageModel
from ginkohub.store import KeyValueStore
from ginkohub.utils import read_usage

router = APIRouter()
logger = get_logger("routes.system")

_STARTED_AT = time.time()


@router.get("/system/info", tags=["System"])
async def get_system_info():
    """Get server system information"""
    memory = psutil.virtual_memory()
    return {
        "platform": platform.system().lower(),
        "python": platform.python_version(),
        "hostname": socket.gethostname(),
        "cpus": os.cpu_count(),
        "uptime": int(time.time() - psutil.boot_time()),
        "process_uptime": int(time.time() - _STARTED_AT),
        "memory": {
            "total": memory.total,
            "free": memory.available,
            "usage": f"{(1 - memory.available / memory.total) * 100:.1f}%",
        },
        "version": Config.VERSION,
    }


@router.get("/system/stats", tags=["System"])
async def get_usage_stats(store: KeyValueStore = Depends(get_store)):
    """Usage counters for every feature"""
    try:
        usage = await run_in_threadpool(read_usage, store)
    except Exception as e:
        logger.error(f"Reading usage counters failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to read stats")

    total = usage.pop("total", 0)
    return {"total_requests": total, "features": usage}


def describe_storage(store: KeyValueStore) -> dict:
    keys = store.keys("*")
    namespaces = Counter(key.split(":", 1)[0] for key in keys)
    return {"backend": store.name, "keys": len(keys), "namespaces": dict(namespaces)}


@router.get("/system/storage", response_model=StorageModel, tags=["System"])
async def get_storage_info(store: KeyValueStore = Depends(get_store)):
    """Which store backend is active and what it holds"""
    try:
        return await run_in_threadpool(describe_storage, store)
    except Exception as e:
        logger.error(f"Reading storage info failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to read storage info")
