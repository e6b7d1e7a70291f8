"""Health-check orchestrator: probes every surface and records the run."""

import asyncio
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import anyio

from ..adapters import HttpProbe, StorageProbe
from ..config import Settings, get_settings
from ..db.ledger import RunLedger
from ..exceptions import HealthCheckError
from ..logging import get_logger, log_run_event
from ..models.runs import SEVERITIES, Issue, Run, utcnow
from ..models.surfaces import ProbeResult, Surface
from .severity import classify_severity, is_auto_fixable
from .surfaces import build_surface_catalog

logger = get_logger(__name__)

STATUS_OUTCOMES = ('server_error', 'client_error', 'unexpected_status')


@dataclass
class HealthCheckReport:
    """A finalized run together with the issues it recorded."""

    run: Run
    issues: List[Issue]

    def severity_counts(self) -> Dict[str, int]:
        counts = {severity: 0 for severity in SEVERITIES}
        for issue in self.issues:
            counts[issue.severity] += 1
        return counts

    def summary(self) -> Dict[str, Any]:
        """Per-category pass ratios and issue totals."""
        summary: Dict[str, Any] = {
            key: counts.ratio for key, counts in self.run.counts.items()
        }
        summary['total_issues'] = len(self.issues)
        summary.update(self.severity_counts())
        return summary

    def to_response(self, max_issues: int = 20) -> Dict[str, Any]:
        """Bounded JSON body returned to the triggering caller."""
        ended_at = self.run.ended_at or utcnow()
        return {
            'success': True,
            'status': self.run.public_status,
            'run_id': self.run.id,
            'timestamp': ended_at.isoformat(),
            'duration_ms': self.run.duration_ms,
            'summary': self.summary(),
            'issues': [issue.to_dict() for issue in self.issues[:max_issues]],
            'results': self.run.result_dict(),
        }


class HealthCheckOrchestrator:
    """Fans probes out over the surface catalog and aggregates them into a run."""

    def __init__(
        self,
        ledger: RunLedger,
        surfaces: Optional[Iterable[Surface]] = None,
        *,
        http_probe: Optional[HttpProbe] = None,
        storage_probe: Optional[StorageProbe] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the orchestrator.

        Probes that are not supplied are created from settings for each run.
        """
        self.settings = settings or get_settings()
        self.ledger = ledger
        self.surfaces = (
            list(surfaces) if surfaces is not None else build_surface_catalog(self.settings)
        )
        self._http_probe = http_probe
        self._storage_probe = storage_probe
        self._base_url = self.settings.base_url.rstrip('/')

    async def run(self) -> HealthCheckReport:
        """Execute one health-check run.

        Raises HealthCheckError if the run cannot be completed; a minimal run
        with status ``error`` has been recorded on a best-effort basis by then.
        """
        start_time = time.monotonic()
        run = Run.start()

        log_run_event(logger, run_id=run.id, phase="started", surfaces=len(self.surfaces))

        try:
            async with AsyncExitStack() as stack:
                http_probe = self._http_probe or await stack.enter_async_context(
                    HttpProbe.from_settings(self.settings)
                )
                storage_probe = self._storage_probe or await stack.enter_async_context(
                    StorageProbe.from_settings(self.settings)
                )
                results = await self._probe_all(http_probe, storage_probe)

            issues = self._aggregate(run, results)
            run.complete(issues, self._elapsed_ms(start_time))
            await self.ledger.record_run(run, issues)

        except Exception as e:
            failed_run = await self._record_failure(run, e, start_time)
            raise HealthCheckError(str(e), failed_run) from e

        log_run_event(
            logger,
            run_id=run.id,
            phase="completed",
            status=run.status,
            issues_found=run.issues_found,
            duration_ms=run.duration_ms
        )
        return HealthCheckReport(run=run, issues=issues)

    async def _probe_all(self, http_probe, storage_probe) -> List[ProbeResult]:
        """Run every probe concurrently within the run's wall-clock budget.

        Results come back in catalog order. Probes still in flight when the
        budget runs out are cancelled and reported as timeouts.
        """
        if not self.surfaces:
            return []

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_probes)

        async def probe_surface(surface: Surface) -> ProbeResult:
            probe = storage_probe if surface.kind == 'storage_table' else http_probe
            async with semaphore:
                return await self._probe_with_timeout(probe, surface)

        tasks = [asyncio.create_task(probe_surface(surface)) for surface in self.surfaces]
        done, pending = await asyncio.wait(tasks, timeout=self.settings.run_timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                "Run budget exhausted, abandoning probes",
                abandoned=len(pending),
                run_timeout=self.settings.run_timeout
            )

        results = []
        for task, surface in zip(tasks, self.surfaces):
            if task in done and not task.cancelled():
                error = task.exception()
                results.append(task.result() if error is None else ProbeResult(
                    surface=surface, outcome='error', detail=str(error) or type(error).__name__
                ))
            else:
                results.append(ProbeResult(
                    surface=surface,
                    outcome='timeout',
                    detail=f"Abandoned after run budget of {self.settings.run_timeout}s",
                ))
        return results

    async def _probe_with_timeout(self, probe, surface: Surface) -> ProbeResult:
        try:
            with anyio.fail_after(self.settings.probe_timeout):
                return await probe.probe(surface)
        except (TimeoutError, asyncio.TimeoutError):
            return ProbeResult(
                surface=surface,
                outcome='timeout',
                detail=f"Probe timed out after {self.settings.probe_timeout}s",
            )
        except Exception as e:
            logger.error(
                "Probe raised unexpectedly",
                surface=surface.name,
                error=str(e),
                error_type=type(e).__name__
            )
            return ProbeResult(surface=surface, outcome='error', detail=str(e) or type(e).__name__)

    def _aggregate(self, run: Run, results: List[ProbeResult]) -> List[Issue]:
        """Update the run's counters and synthesize issues for failures."""
        issues: List[Issue] = []

        for result in results:
            surface = result.surface
            counts = run.counts[surface.counter_key]
            details = run.details[surface.counter_key]

            if result.passed:
                counts.record(passed=surface.check_count, failed=0)
                continue

            if result.outcome == 'missing_header':
                missing = result.missing_headers
                counts.record(passed=surface.check_count - len(missing), failed=len(missing))
                details.append({'missing': list(missing)})
                for header in missing:
                    issues.append(self._build_issue(run, result, header=header))
                continue

            counts.record(passed=0, failed=surface.check_count)
            details.append(self._detail(result))
            issues.append(self._build_issue(run, result))

        return issues

    def _build_issue(self, run: Run, result: ProbeResult, header: Optional[str] = None) -> Issue:
        surface = result.surface
        return Issue.new(
            run.id,
            category=surface.issue_category,
            severity=classify_severity(surface.kind, result.outcome),
            title=self._issue_title(result, header),
            description=result.detail or result.outcome,
            target=self.target_for(surface),
            auto_fixable=is_auto_fixable(surface.kind, result.outcome),
        )

    @staticmethod
    def _issue_title(result: ProbeResult, header: Optional[str]) -> str:
        surface = result.surface
        by_status = result.outcome in STATUS_OUTCOMES

        if surface.kind == 'page':
            return f"Page Unavailable: {surface.target}" if by_status else f"Page Error: {surface.target}"
        if surface.kind == 'api':
            return f"API Error: {surface.target}" if by_status else f"API Timeout: {surface.target}"
        if surface.kind == 'storage_table':
            if result.outcome == 'missing':
                return f"Missing Table: {surface.target}"
            return f"Storage Error: {surface.target}"
        if header:
            return f"Missing Security Header: {header}"
        return "Security Check Failed"

    @staticmethod
    def _detail(result: ProbeResult) -> Dict[str, Any]:
        detail: Dict[str, Any] = {'target': result.surface.target, 'outcome': result.outcome}
        if result.status_code is not None:
            detail['status'] = result.status_code
        if result.detail:
            detail['error'] = result.detail
        return detail

    def target_for(self, surface: Surface) -> str:
        """Identifier of a surface as recorded on issues."""
        if surface.kind == 'storage_table':
            return f"storage://{surface.target}"
        if surface.kind == 'security_headers':
            return self._base_url
        return f"{self._base_url}{surface.target}"

    async def _record_failure(self, run: Run, error: Exception, start_time: float) -> Run:
        """Best-effort write of a minimal error run. Its own failure is swallowed."""
        failed_run = Run(id=run.id, started_at=run.started_at)
        failed_run.fail(str(error) or type(error).__name__, self._elapsed_ms(start_time))

        log_run_event(
            logger,
            run_id=run.id,
            phase="failed",
            error=str(error),
            error_type=type(error).__name__
        )

        try:
            await self.ledger.record_run(failed_run, [])
        except Exception as e:
            logger.error("Failed to record error run", run_id=run.id, error=str(e))

        return failed_run

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)
