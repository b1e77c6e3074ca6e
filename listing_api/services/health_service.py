# listing_api/services/health_service.py
from typing import Dict, Any, TYPE_CHECKING
from datetime import datetime, timezone
import psutil
import platform
from listing_api.core.redis import check_redis_connection
import logging

if TYPE_CHECKING:
    from listing_api.core.container import Services

logger = logging.getLogger(__name__)

async def get_detailed_health(services: "Services") -> Dict[str, Any]:
    """Get detailed health status of all services"""
    settings = services.settings
    health_status = {
        "services": {},
        "system": {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    # Document store
    try:
        db_healthy = await services.documents.ping()
        health_status["services"]["documents"] = {
            "healthy": db_healthy,
            "type": services.documents.backend_name,
            "status": "connected" if db_healthy else "disconnected",
        }
    except Exception as e:
        health_status["services"]["documents"] = {"healthy": False, "error": str(e)}

    # Object store
    try:
        objects_healthy = await services.objects.ping()
        health_status["services"]["objects"] = {
            "healthy": objects_healthy,
            "type": services.objects.backend_name,
            "bucket": services.objects.bucket,
            "status": "connected" if objects_healthy else "disconnected",
        }
    except Exception as e:
        health_status["services"]["objects"] = {"healthy": False, "error": str(e)}

    if settings.EVENT_DISPATCH_MODE == "celery":
        # Redis
        try:
            redis_healthy = await check_redis_connection(settings.REDIS_URL)
            health_status["services"]["redis"] = {
                "healthy": redis_healthy,
                "type": "Redis",
                "status": "connected" if redis_healthy else "disconnected",
            }
        except Exception as e:
            health_status["services"]["redis"] = {"healthy": False, "error": str(e)}

        # Celery
        try:
            from listing_api.core.celery_app import celery_app
            inspector = celery_app.control.inspect(timeout=1.0)
            stats = inspector.stats() if inspector else None
            active_workers = list(stats.keys()) if stats else []
            health_status["services"]["celery"] = {
                "healthy": bool(active_workers),
                "workers": active_workers,
                "count": len(active_workers),
            }
        except Exception as e:
            health_status["services"]["celery"] = {"healthy": False, "error": str(e)}

    # System
    try:
        health_status["system"] = {
            "cpu_percent": psutil.cpu_percent(interval=0.1),
            "memory_percent": psutil.virtual_memory().percent,
            "disk_percent": psutil.disk_usage("/").percent,
            "python_version": platform.python_version(),
            "platform": platform.platform(),
            "uptime_seconds": datetime.now(timezone.utc).timestamp() - psutil.boot_time(),
        }
    except Exception as e:
        logger.error(f"Failed to get system metrics: {e}")

    # Overall
    all_services_healthy = all(s.get("healthy", False) for s in health_status["services"].values())
    health_status["overall_health"] = "healthy" if all_services_healthy else "degraded"

    return health_status
