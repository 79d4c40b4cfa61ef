"""
Admin HTTP API.

aiohttp application exposing the administrative operations of the
engine. Engine errors are mapped to HTTP statuses:

    ValidationError          400
    NotFoundError            404
    BusinessRuleViolation    409
    ConcurrencyConflict      409
    InfrastructureError      503
"""

import json
from collections.abc import Awaitable, Callable

import pydantic
from aiohttp import web
from loguru import logger

from compensation.api.handlers import ADMIN_SERVICE, routes
from compensation.api.serializers import dumps
from compensation.config.database import async_session_maker
from compensation.config.settings import settings
from compensation.services.admin_service import CompensationAdminService
from compensation.utils.exceptions import (
    BusinessRuleViolation,
    ConcurrencyConflict,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from compensation.utils.logging import setup_logging
from compensation.utils.redis_utils import get_redis_client


Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _error(status: int, error: str, message: str, reason: str | None = None) -> web.Response:
    body = {"error": error, "message": message}
    if reason is not None:
        body["reason"] = reason
    return web.json_response(body, status=status, dumps=dumps)


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Translate engine exceptions into JSON error responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except json.JSONDecodeError as e:
        return _error(400, "ValidationError", f"Malformed JSON body: {e.msg}")
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        return _error(400, "ValidationError", f"{location}: {first['msg']}")
    except ValidationError as e:
        return _error(400, "ValidationError", e.message)
    except NotFoundError as e:
        return _error(404, "NotFound", e.message, e.code.value)
    except BusinessRuleViolation as e:
        return _error(409, "BusinessRuleViolation", e.message, e.code.value)
    except ConcurrencyConflict as e:
        return _error(409, "ConcurrencyConflict", e.message)
    except InfrastructureError as e:
        logger.error(f"Infrastructure failure on {request.method} {request.path}: {e}")
        return _error(503, "InfrastructureError", e.message)


def create_app(admin_service: CompensationAdminService | None = None) -> web.Application:
    """
    Build the admin API application.

    Args:
        admin_service: Service instance, built from process settings when None
    """
    app = web.Application(middlewares=[error_middleware])
    if admin_service is None:
        admin_service = CompensationAdminService(
            async_session_maker,
            redis_client=get_redis_client(),
            run_timeout=settings.run_timeout_seconds,
            run_concurrency=settings.run_concurrency,
        )
    app[ADMIN_SERVICE] = admin_service
    app.add_routes(routes)
    return app


def main() -> None:
    """Run the admin API."""
    setup_logging("api")
    logger.info(f"Admin API listening on {settings.api_host}:{settings.api_port}")
    web.run_app(
        create_app(),
        host=settings.api_host,
        port=settings.api_port,
        print=None,
    )


if __name__ == "__main__":
    main()
