"""
Workspace provisioning: groups, teams, channels, members and guests.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_fixed

from .config import config
from .graph_client import GraphClient
from .models import (
    FailureKind,
    OutcomeStatus,
    ProvisioningIntent,
    ProvisioningOutcome,
    StepFailure,
    TeamRequest,
    is_valid_guid,
)

StatusCallback = Callable[[str], Awaitable[None]]


class _Run:
    """Collects status lines and failures for one TeamRequest."""

    def __init__(self, request: TeamRequest, notify: Optional[StatusCallback]):
        self.request = request
        self.notify = notify
        self.failures: List[StepFailure] = []
        self.messages: List[str] = []
        self.group_id: Optional[str] = None
        self.team_id: Optional[str] = None

    async def post(self, text: str):
        self.messages.append(text)
        if self.notify is not None:
            await self.notify(text)

    async def fail(self, kind: FailureKind, target: str, text: str):
        self.failures.append(StepFailure(kind=kind, target=target, message=text))
        await self.post(text)

    def outcome(self, status: Optional[OutcomeStatus] = None) -> ProvisioningOutcome:
        if status is None:
            status = OutcomeStatus.PARTIAL_FAILURE if self.failures else OutcomeStatus.SUCCESS
        return ProvisioningOutcome(
            team_name=self.request.team_name,
            status=status,
            group_id=self.group_id,
            team_id=self.team_id,
            failures=list(self.failures),
            messages=list(self.messages),
        )

    async def hard_failure(self, kind: FailureKind, text: str) -> ProvisioningOutcome:
        await self.fail(kind, self.request.team_name, text)
        return self.outcome(OutcomeStatus.HARD_FAILURE)


class WorkspaceProvisioner:
    """Creates or updates Teams from parsed spreadsheet rows.

    Requests are handled one after another. A failing request never stops
    the ones after it, and inside a request a failing channel, member or
    guest never stops its siblings.
    """

    def __init__(
        self,
        graph_client: Optional[GraphClient] = None,
        team_create_attempts: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.graph = graph_client or GraphClient()
        self.team_create_attempts = team_create_attempts or config.provisioning.team_create_attempts
        if retry_delay_seconds is None:
            retry_delay_seconds = config.provisioning.team_create_retry_delay_seconds
        self.retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

    async def provision(
        self,
        token: str,
        requests: List[TeamRequest],
        intent: ProvisioningIntent,
        notify: Optional[StatusCallback] = None,
    ) -> List[ProvisioningOutcome]:
        """Run the create or update flow depending on intent."""
        if intent == ProvisioningIntent.CREATE:
            return await self.provision_new(token, requests, notify)
        return await self.provision_update(token, requests, notify)

    async def provision_new(
        self, token: str, requests: List[TeamRequest], notify: Optional[StatusCallback] = None
    ) -> List[ProvisioningOutcome]:
        """Create a group and team for every request, then add channels, members and guests."""
        return await self._run_each(token, requests, notify, self._create_one)

    async def provision_update(
        self, token: str, requests: List[TeamRequest], notify: Optional[StatusCallback] = None
    ) -> List[ProvisioningOutcome]:
        """Add channels and members to teams that already exist."""
        return await self._run_each(token, requests, notify, self._update_one)

    async def _run_each(
        self,
        token: str,
        requests: List[TeamRequest],
        notify: Optional[StatusCallback],
        handler: Callable[[str, _Run], Awaitable[ProvisioningOutcome]],
    ) -> List[ProvisioningOutcome]:
        outcomes = []
        for request in requests:
            run = _Run(request, notify)
            try:
                outcome = await handler(token, run)
            except Exception as e:
                self.logger.error(f"Unexpected error while provisioning '{request.team_name}': {e!r}")
                outcome = await self._unexpected_failure(run)
            self._log_outcome(outcome)
            outcomes.append(outcome)
        return outcomes

    async def _unexpected_failure(self, run: _Run) -> ProvisioningOutcome:
        text = f"Failed to provision '{run.request.team_name}' team due to internal error. Please try again later."
        run.failures.append(StepFailure(kind=FailureKind.UNEXPECTED_ERROR, target=run.request.team_name, message=text))
        try:
            await run.post(text)
        except Exception as e:
            self.logger.error(f"Could not post status for '{run.request.team_name}': {e!r}")
        return run.outcome(OutcomeStatus.HARD_FAILURE)

    async def _create_one(self, token: str, run: _Run) -> ProvisioningOutcome:
        request = run.request

        if not request.member_emails:
            return await run.hard_failure(
                FailureKind.OWNER_REQUIRED,
                "Failed to create O365 Group. We should have at least one owner while creating Team. "
                "Guest users are not allowed to be the owners.",
            )

        owner_id = await self.graph.get_user_id(token, request.owner_email)
        if not owner_id:
            return await run.hard_failure(
                FailureKind.OWNER_NOT_FOUND,
                f"Failed to create O365 Group for '{request.team_name}'. "
                f"Owner {request.owner_email} was not found in the directory.",
            )

        group_id = await self.graph.create_group(token, request.team_name, owner_id)
        if not is_valid_guid(group_id):
            return await run.hard_failure(
                FailureKind.GROUP_CREATION_FAILED,
                "Failed to create O365 Group due to internal error. Please try again later.",
            )
        run.group_id = group_id
        await run.post(
            f"Created O365 group for '{request.team_name}'. Now, creating team which may take some time."
        )

        team_id = await self._create_team_with_retry(token, group_id)
        if team_id is None:
            return await run.hard_failure(
                FailureKind.RETRY_EXHAUSTED,
                f"Failed to create '{request.team_name}' team after {self.team_create_attempts} attempts. "
                "Please try again later.",
            )
        run.team_id = team_id
        await run.post(f"'{request.team_name}' Team created successfully.")

        await self._add_channels_and_members(
            token, run, member_emails=request.member_emails[1:], guest_emails=request.guest_emails
        )
        return run.outcome()

    async def _update_one(self, token: str, run: _Run) -> ProvisioningOutcome:
        request = run.request

        team_id = await self.graph.get_group_id(token, request.team_name)
        if not is_valid_guid(team_id):
            return await run.hard_failure(
                FailureKind.TEAM_NOT_FOUND,
                f"Unable to find '{request.team_name}' Team. Please check team name try again later.",
            )
        run.team_id = team_id

        await self._add_channels_and_members(token, run, member_emails=request.member_emails, guest_emails=[])
        return run.outcome()

    async def _create_team_with_retry(self, token: str, group_id: str) -> Optional[str]:
        """Team-enable the group, retrying while the new group is not ready."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.team_create_attempts),
            wait=wait_fixed(self.retry_delay_seconds),
            retry=retry_if_result(lambda team_id: not is_valid_guid(team_id)),
            retry_error_callback=lambda retry_state: None,
            before_sleep=self._log_team_retry,
            sleep=self._sleep,
        )
        return await retrying(self.graph.create_team, token, group_id)

    def _log_team_retry(self, retry_state):
        self.logger.warning(
            f"Team creation attempt {retry_state.attempt_number} of {self.team_create_attempts} "
            f"did not return a team id, retrying in {self.retry_delay_seconds}s"
        )

    async def _add_channels_and_members(
        self, token: str, run: _Run, member_emails: List[str], guest_emails: List[str]
    ):
        request = run.request
        team_id = run.team_id

        for channel_name in request.channel_names:
            channel_id = await self.graph.create_channel(token, team_id, channel_name, channel_name)
            if not channel_id:
                await run.fail(
                    FailureKind.REMOTE_REJECTED,
                    channel_name,
                    f"Failed to create '{channel_name}' channel in '{request.team_name}' team.",
                )

        for email in member_emails:
            await self._add_member(token, run, email)

        for email in guest_emails:
            await self._add_guest(token, run, email)

        if run.failures:
            await run.post(
                f"Finished '{request.team_name}' team with {len(run.failures)} failure(s)."
            )
        else:
            await run.post(f"Channels, Members Added successfully for '{request.team_name}' team.")

    async def _add_member(self, token: str, run: _Run, email: str):
        team_name = run.request.team_name
        user_id = await self.graph.get_user_id(token, email)
        if not user_id:
            await run.fail(
                FailureKind.DIRECTORY_LOOKUP_MISS,
                email,
                f"Failed to add {email} to {team_name}. User was not found in the directory.",
            )
            return

        if not await self.graph.add_member(token, run.team_id, user_id):
            await run.fail(
                FailureKind.REMOTE_REJECTED,
                email,
                f"Failed to add {email} to {team_name}. Check if user is already part of this team.",
            )

    async def _add_guest(self, token: str, run: _Run, email: str):
        team_name = run.request.team_name
        user_id = await self.graph.get_user_id(token, email)
        if not user_id:
            user_id = await self.graph.invite_guest(token, email)
            if not user_id:
                await run.fail(
                    FailureKind.REMOTE_REJECTED,
                    email,
                    f"Failed to invite {email} as a guest to {team_name}.",
                )
                return

        if not await self.graph.add_member(token, run.team_id, user_id):
            await run.fail(
                FailureKind.REMOTE_REJECTED,
                email,
                f"Failed to add {email} to {team_name}. Check if user is already part of this team.",
            )

    def _log_outcome(self, outcome: ProvisioningOutcome):
        if outcome.status == OutcomeStatus.SUCCESS:
            self.logger.info(f"Provisioned team '{outcome.team_name}'")
        else:
            kinds = ", ".join(failure.kind.value for failure in outcome.failures)
            self.logger.warning(f"Team '{outcome.team_name}' finished with {outcome.status.value}: {kinds}")
