"""
Conversation Orchestrator - Coordinates triage, handoff and specialist sessions.

The orchestrator owns the single live conversation: the current agent,
the transcript, and the rate limit state. It drives the handoff protocol

    triage --(handoff)--> connecting --(sequence done)--> specialist
    specialist --(idle timeout | end_session)--> triage

and delegates timing to IdleSupervisor and ConnectionSequence and
bookkeeping to SessionRegistry.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..core.connection import ConnectionSequence, ConnectingPhase
from ..core.idle_supervisor import IdleSupervisor
from ..core.logging_config import bind_log_context
from ..core.rate_limit import RateLimitClassifier, RateLimitError
from ..core.session_registry import SessionRegistry
from ..llm.base import LLMError
from ..llm.factory import create_llm_provider
from ..models.agent import SpecialistAgent, TriageAgent
from ..models.message import Attachment, Message
from ..models.rate_limit import RateLimitState
from ..models.session import Session
from .backend import SupportBackend
from .roster import TRIAGE_AGENT, resolve_specialist

logger = logging.getLogger(__name__)

DEFAULT_HANDOFF_MESSAGE = "Connecting you to an expert..."
ERROR_MESSAGE = "I'm sorry, I encountered an error. Please try again."
IDLE_END_MESSAGE = "Session ended due to inactivity. Feel free to start a new conversation!"
USER_END_MESSAGE = "Session ended. Feel free to start a new conversation!"


def build_greeting_context(query: str) -> str:
    """Synthetic instruction asking a freshly assigned specialist to greet the user."""
    return (
        f"[SYSTEM: You have just been assigned to this user. The user's initial inquiry "
        f"was: \"{query}\". Please introduce yourself, state your expertise, and end your "
        f"message with \"How can I help you today?\". Do NOT answer the question yet, "
        f"just greet them.]"
    )


class ConversationPhase(str, Enum):
    TRIAGE = "triage"
    CONNECTING = "connecting"
    SPECIALIST = "specialist"


@dataclass
class ConversationEvent:
    """Notification pushed to listeners when the conversation changes."""
    type: str
    data: Dict[str, Any] = field(default_factory=dict)


Listener = Callable[[ConversationEvent], None]


class ConversationOrchestrator:
    """
    Orchestrates one support conversation.
    Only one backend call may be in flight; extra submissions are ignored.
    """

    def __init__(
        self,
        backend: SupportBackend,
        sessions: Optional[SessionRegistry] = None,
        idle_supervisor: Optional[IdleSupervisor] = None,
        connection: Optional[ConnectionSequence] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """
        Initialize orchestrator with its collaborators.

        Args:
            backend: Backend collaborator used for every model call
            sessions: Session registry (a fresh one by default)
            idle_supervisor: Idle supervisor; its callbacks are wired here
            connection: Connecting sequence runner
            clock: Wall clock used to expire rate limits
        """
        self.backend = backend
        self.sessions = sessions or SessionRegistry()
        self.idle = idle_supervisor or IdleSupervisor()
        self.idle.on_warning = self._handle_idle_warning
        self.idle.on_timeout = self._handle_idle_timeout
        self.connection = connection or ConnectionSequence()
        self._clock = clock

        self.current_agent: Union[TriageAgent, SpecialistAgent] = TRIAGE_AGENT
        self.messages: List[Message] = []
        self.active_session_id: Optional[str] = None
        self.rate_limit: Optional[RateLimitState] = None
        self.is_busy = False
        self._pending_query = ""
        self._listeners: List[Listener] = []

    @classmethod
    def from_settings(cls, config: Any) -> "ConversationOrchestrator":
        """Build the orchestrator and its collaborators from Settings."""
        llm_provider = create_llm_provider(
            provider=config.llm_provider,
            api_key=config.llm_api_key or "",
            model=config.llm_model,
            base_url=config.llm_base_url,
        )
        classifier = RateLimitClassifier(
            free_tier=config.is_free_tier,
            classify_all_429=config.rate_limit_classify_all_429,
        )
        backend = SupportBackend(llm_provider, classifier, history_window=config.history_window)
        idle = IdleSupervisor(
            warning_seconds=config.idle_warning_seconds,
            timeout_seconds=config.idle_timeout_seconds,
            poll_interval=config.idle_poll_interval,
        )
        connection = ConnectionSequence(dwell_seconds=(
            config.connecting_dwell_analyzing,
            config.connecting_dwell_found,
            config.connecting_dwell_connecting,
            config.connecting_dwell_connected,
        ))
        logger.info(
            f"Orchestrator configured: provider={config.llm_provider if llm_provider else 'none'}, "
            f"free_tier={config.is_free_tier}"
        )
        return cls(backend, idle_supervisor=idle, connection=connection)

    # Properties

    @property
    def current_session_id(self) -> Optional[str]:
        return self.sessions.current_session_id

    @property
    def phase(self) -> ConversationPhase:
        if not self.current_agent.is_triage:
            return ConversationPhase.SPECIALIST
        if self.connection.is_running:
            return ConversationPhase.CONNECTING
        return ConversationPhase.TRIAGE

    # Events

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event_type: str, **data: Any) -> None:
        event = ConversationEvent(type=event_type, data=data)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Conversation listener failed on {event_type}: {str(e)}", exc_info=True)

    def _append(self, message: Message) -> None:
        self.messages.append(message)
        self._emit("message", message=message)

    # Messaging

    async def submit_user_message(
        self,
        text: str,
        attachments: Sequence[Attachment] = (),
    ) -> bool:
        """
        Process one user turn.

        Args:
            text: Message text
            attachments: Already base64-encoded attachments

        Returns:
            True if the message was accepted into the conversation
        """
        attachments = list(attachments)
        if not text.strip() and not attachments:
            return False

        if self.is_busy or self.connection.is_running:
            logger.warning("Ignoring message: a reply or handoff is still in progress")
            return False

        self._refresh_rate_limit()
        if self.rate_limit is not None and self.rate_limit.reset_time is not None:
            logger.warning(
                f"Ignoring message: rate limited until {self.rate_limit.reset_time.isoformat()}"
            )
            return False

        bind_log_context(agent=self.current_agent.id, session_id=self.current_session_id)
        logger.info(
            f"Processing message for {self.current_agent.name}: {text[:100]}",
            extra={"extra_fields": {"attachments": len(attachments)}}
        )

        history = list(self.messages)
        self._append(Message(role="user", content=text, attachments=attachments))
        self._sync_idle()

        agent, session_id = self.current_agent, self.active_session_id
        self.is_busy = True
        try:
            reply = await self.backend.send_message(text, history, attachments, agent)
        except RateLimitError as e:
            self._set_rate_limit(e.state)
            return True
        except LLMError as e:
            logger.error(
                f"Backend call failed for {agent.name}: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {"agent": agent.id, "status_code": e.status_code}}
            )
            if not self._moved_on(agent, session_id):
                self._append(Message(role="model", content=ERROR_MESSAGE))
            return True
        finally:
            self.is_busy = False

        self.rate_limit = None

        if self._moved_on(agent, session_id):
            logger.info(f"Dropping reply from {agent.name}: conversation moved on")
            return True

        decision = reply.handoff
        if self.current_agent.is_triage and decision is not None and decision.handoff:
            target = resolve_specialist(decision.agent_id)
            if target is not None:
                self._append(Message(
                    role="model",
                    content=decision.message or DEFAULT_HANDOFF_MESSAGE,
                    is_system_message=True,
                ))
                self._begin_connecting(target, text, decision.reason)
                return True
            logger.warning(f"Handoff to unknown agent {decision.agent_id!r} ignored")

        self._append(Message(role="model", content=reply.text, sources=reply.sources))
        self._record_reply(reply.text)
        self.idle.reset_timer()
        return True

    def _moved_on(self, agent: Union[TriageAgent, SpecialistAgent], session_id: Optional[str]) -> bool:
        """True once the agent or selected session a backend call was made for is gone."""
        return self.current_agent is not agent or self.active_session_id != session_id

    def _record_reply(self, text: str) -> None:
        session = self.sessions.get(self.current_session_id) if self.current_session_id else None
        if session is not None and session.agent_id == self.current_agent.id:
            self.sessions.record_reply(session.id, text)

    # Handoff

    def _begin_connecting(self, target: SpecialistAgent, query: str, reason: Optional[str]) -> None:
        logger.info(
            f"Handing off to {target.name} ({target.id}), reason={reason or 'N/A'}"
        )
        self._pending_query = query
        self._emit("handoff_started", agent=target, reason=reason)
        self.connection.start(
            target,
            on_phase=self._handle_connecting_phase,
            on_complete=self._complete_connection,
        )

    def _handle_connecting_phase(self, phase: ConnectingPhase) -> None:
        self._emit("connecting_phase", phase=phase, agent=self.connection.agent)

    async def _complete_connection(self, agent: SpecialistAgent) -> None:
        """Bind the specialist, open its session and fetch the greeting."""
        query, self._pending_query = self._pending_query, ""
        self.current_agent = agent
        session = self.sessions.open_session(
            agent.id, query, last_message=f"Connected to {agent.name}"
        )
        self.active_session_id = session.id
        bind_log_context(agent=agent.id, session_id=session.id)
        self._emit("connected", agent=agent, session=session)

        self.is_busy = True
        try:
            reply = await self.backend.send_message(
                build_greeting_context(query), list(self.messages), [], agent
            )
        except LLMError as e:
            logger.error(f"Failed to get greeting from {agent.name}: {str(e)}", exc_info=True)
            if isinstance(e, RateLimitError):
                self._set_rate_limit(e.state)
        else:
            if not self._moved_on(agent, session.id):
                self._append(Message(role="model", content=reply.text, sources=reply.sources))
                self.sessions.record_reply(session.id, reply.text)
            else:
                logger.info(f"Dropping greeting from {agent.name}: conversation moved on")
        finally:
            self.is_busy = False
            self._sync_idle()
            self.idle.reset_timer()

    # Lifecycle

    def _sync_idle(self) -> None:
        """Idle tracking runs only with a specialist and a non-empty transcript."""
        self.idle.set_enabled(not self.current_agent.is_triage and bool(self.messages))

    def _handle_idle_warning(self) -> None:
        self._emit("idle_warning", time_remaining=self.idle.format_time_remaining())

    def _handle_idle_timeout(self) -> None:
        self._end_specialist_session(IDLE_END_MESSAGE, reason="idle")

    def dismiss_idle_warning(self) -> None:
        """User confirmed they are still there."""
        self.idle.reset_timer()

    def end_session(self) -> bool:
        """
        User-initiated end of the specialist conversation.

        Returns:
            False when there was no specialist conversation to end
        """
        return self._end_specialist_session(USER_END_MESSAGE, reason="user")

    def _end_specialist_session(self, notice: str, reason: str) -> bool:
        # Back on triage means this binding already ended; late callbacks are no-ops
        if self.current_agent.is_triage:
            return False

        departing = self.current_agent
        session_id = self.current_session_id
        self.sessions.end_session(session_id)
        self._append(Message(role="model", content=notice, is_system_message=True))
        self.current_agent = TRIAGE_AGENT
        self.idle.disable()

        logger.info(f"Specialist session with {departing.name} ended: reason={reason}")
        self._emit("session_ended", agent=departing, session_id=session_id, reason=reason)
        return True

    def select_session(self, session_id: str) -> Optional[Session]:
        """
        Switch to a past or active session's agent.
        The transcript is not replayed; only summary fields are kept per session.
        """
        session = self.sessions.get(session_id)
        if session is None:
            return None

        self.connection.cancel()
        self._pending_query = ""
        self.active_session_id = session.id
        self.current_agent = resolve_specialist(session.agent_id) or TRIAGE_AGENT
        self.messages = []
        self._sync_idle()
        logger.info(f"Selected session {session.id} with agent {self.current_agent.name}")
        return session

    def shutdown(self) -> None:
        """Cancel every outstanding timer."""
        self.connection.cancel()
        self.idle.disable()

    # Rate limit

    def _set_rate_limit(self, state: RateLimitState) -> None:
        self.rate_limit = state
        logger.warning(f"Conversation rate limited: {state.message}")
        self._emit("rate_limited", state=state)

    def _refresh_rate_limit(self) -> None:
        if self.rate_limit is not None and self.rate_limit.has_expired(self._clock()):
            logger.info("Rate limit window passed, accepting messages again")
            self.rate_limit = None

    # Snapshot

    def snapshot(self) -> Dict[str, Any]:
        """Plain-data view of the conversation for API responses."""
        self._refresh_rate_limit()
        agent_fields = {"persona"}

        rate_limit = None
        if self.rate_limit is not None:
            rate_limit = {
                **self.rate_limit.model_dump(mode="json"),
                "label": self.rate_limit.label,
                "time_remaining": self.rate_limit.format_time_remaining(self._clock()),
            }

        connecting = None
        if self.phase == ConversationPhase.CONNECTING and self.connection.agent is not None:
            connecting = {
                "agent": self.connection.agent.model_dump(exclude=agent_fields),
                "phase": self.connection.phase.value,
            }

        return {
            "phase": self.phase.value,
            "current_agent": self.current_agent.model_dump(exclude=agent_fields),
            "messages": [m.model_dump(mode="json") for m in self.messages],
            "current_session_id": self.current_session_id,
            "active_session_id": self.active_session_id,
            "is_busy": self.is_busy,
            "connecting": connecting,
            "idle": {
                "state": self.idle.state.value,
                "show_warning": self.idle.show_warning,
                "time_remaining": self.idle.format_time_remaining(),
            },
            "rate_limit": rate_limit,
        }
