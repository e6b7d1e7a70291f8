"""HTTP trigger endpoints for health checks and remediation sweeps."""

import hmac
from dataclasses import dataclass
from typing import Optional

from aiohttp import web

from ..adapters import HttpProbe, StorageProbe
from ..config import Settings, get_settings
from ..db.ledger import RunLedger
from ..exceptions import HealthCheckError, LedgerError
from ..logging import get_logger
from ..models.runs import utcnow
from ..orchestrator import HealthCheckOrchestrator, RemediationExecutor, RemediationSweep
from ..orchestrator.executor import RandomSource

logger = get_logger(__name__)


@dataclass
class AppState:
    """Collaborators shared by the request handlers."""

    settings: Settings
    ledger: Optional[RunLedger] = None
    owns_ledger: bool = False
    random_source: Optional[RandomSource] = None
    http_probe: Optional[HttpProbe] = None
    storage_probe: Optional[StorageProbe] = None

    async def get_ledger(self) -> RunLedger:
        """The ledger, opened on first use. Raises LedgerError if unreachable."""
        if self.ledger is None:
            self.ledger = await RunLedger.open(self.settings.db_path)
            self.owns_ledger = True
        return self.ledger


state_key = web.AppKey("state", AppState)


def is_authorized(request: web.Request, settings: Settings) -> bool:
    """Check the shared secret or the scheduler's invocation marker."""
    if not settings.trigger_secret:
        return True

    expected = f"Bearer {settings.trigger_secret}"
    provided = request.headers.get("Authorization", "")
    if hmac.compare_digest(provided.encode(), expected.encode()):
        return True

    return request.headers.get(settings.trigger_source_header) == "1"


def _unauthorized() -> web.Response:
    return web.json_response({'error': 'Unauthorized'}, status=401)


def _error_response(error: Exception, **extra) -> web.Response:
    body = {
        'success': False,
        'status': 'ERROR',
        'error': str(error),
        'timestamp': utcnow().isoformat(),
    }
    body.update(extra)
    return web.json_response(body, status=500)


async def healthcheck(request: web.Request) -> web.Response:
    """Run the health-check orchestrator once."""
    state = request.app[state_key]
    if not is_authorized(request, state.settings):
        return _unauthorized()

    try:
        ledger = await state.get_ledger()
        orchestrator = HealthCheckOrchestrator(
            ledger,
            http_probe=state.http_probe,
            storage_probe=state.storage_probe,
            settings=state.settings,
        )
        report = await orchestrator.run()
    except HealthCheckError as e:
        return _error_response(e, run_id=e.run.id if e.run else None)
    except LedgerError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("Health check failed", error=str(e), error_type=type(e).__name__)
        return _error_response(e)

    return web.json_response(report.to_response(state.settings.max_response_issues))


async def autofix(request: web.Request) -> web.Response:
    """Run one remediation sweep over eligible tickets."""
    state = request.app[state_key]
    if not is_authorized(request, state.settings):
        return _unauthorized()

    try:
        ledger = await state.get_ledger()
        executor = RemediationExecutor(
            ledger,
            random_source=state.random_source,
            settings=state.settings,
        )
        sweep = RemediationSweep(ledger, executor=executor, settings=state.settings)
        report = await sweep.run()
    except Exception as e:
        logger.error("Remediation sweep failed", error=str(e), error_type=type(e).__name__)
        return _error_response(e)

    return web.json_response(report.to_response())


async def recent_runs(request: web.Request) -> web.Response:
    """List the most recent runs."""
    state = request.app[state_key]
    if not is_authorized(request, state.settings):
        return _unauthorized()

    try:
        limit = int(request.query.get('limit', '10'))
    except ValueError:
        return web.json_response({'error': 'limit must be an integer'}, status=400)
    if limit < 1:
        return web.json_response({'error': 'limit must be positive'}, status=400)

    try:
        ledger = await state.get_ledger()
        runs = await ledger.recent_runs(limit)
    except LedgerError as e:
        return _error_response(e)

    return web.json_response({'runs': [run.to_dict() for run in runs]})


async def _close_ledger(app: web.Application) -> None:
    state = app[state_key]
    if state.owns_ledger and state.ledger is not None:
        await state.ledger.close()
        state.ledger = None


def create_app(
    settings: Optional[Settings] = None,
    *,
    ledger: Optional[RunLedger] = None,
    random_source: Optional[RandomSource] = None,
    http_probe: Optional[HttpProbe] = None,
    storage_probe: Optional[StorageProbe] = None,
) -> web.Application:
    """Build the trigger application."""
    app = web.Application()
    app[state_key] = AppState(
        settings=settings or get_settings(),
        ledger=ledger,
        random_source=random_source,
        http_probe=http_probe,
        storage_probe=storage_probe,
    )

    app.router.add_get('/healthcheck', healthcheck)
    app.router.add_post('/healthcheck', healthcheck)
    app.router.add_get('/autofix', autofix)
    app.router.add_post('/autofix', autofix)
    app.router.add_get('/runs', recent_runs)
    app.on_cleanup.append(_close_ledger)

    return app
