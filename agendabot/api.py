"""FastAPI REST API for the agenda bot.

Exposes the agenda services as HTTP endpoints for a chat platform adapter.
Run with: uvicorn agendabot.api:app --port 8000
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from . import config
from .errors import ErrorKind
from .models import ActorRole
from .services import (
    AgendaOrchestrator,
    CommandResult,
    DatabaseService,
    HeartbeatService,
    MessageService,
    TimeMonitorService,
    get_logger,
    setup_logging,
)

setup_logging()
logger = get_logger("api")

# Global service instances
db: DatabaseService = None
message_service: MessageService = None
orchestrator: AgendaOrchestrator = None
monitor: TimeMonitorService = None
heartbeat_service: HeartbeatService = None

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.ALREADY_COMPLETED: 409,
    ErrorKind.NOT_COMPLETED: 409,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.NO_CURRENT_ITEM: 409,
}


def build_services(db_path: str = config.DB_PATH, interval: float = config.CHECK_INTERVAL) -> None:
    """Create the service graph and store it in the module globals."""
    global db, message_service, orchestrator, monitor, heartbeat_service

    db = DatabaseService(db_path)
    message_service = MessageService(db)
    orchestrator = AgendaOrchestrator(db, message_service)
    monitor = TimeMonitorService(db, orchestrator.room_configs, message_service)
    heartbeat_service = HeartbeatService(monitor, interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup, cleanup on shutdown."""
    logger.info("Starting API server...")
    build_services(config.DB_PATH, config.CHECK_INTERVAL)
    heartbeat_service.start()

    yield

    # Cleanup
    logger.info("Shutting down API server...")
    if heartbeat_service:
        heartbeat_service.stop()


app = FastAPI(
    title="Agenda Bot API",
    description="Meeting agenda and time monitoring for chat rooms",
    version="1.0.0",
    lifespan=lifespan
)


# ============ Pydantic Models ============

class ActorRequest(BaseModel):
    """Who issues a command. participant_type wins over explicit flags."""
    actor_id: str = ""
    participant_type: Optional[int] = None
    can_moderate: bool = False
    can_add_items: bool = False

    def to_role(self) -> ActorRole:
        if self.participant_type is not None:
            return ActorRole.from_participant_type(self.participant_type, self.actor_id)
        return ActorRole(
            actor_id=self.actor_id,
            can_moderate=self.can_moderate,
            can_add_items=self.can_add_items
        )


class AddItemRequest(ActorRequest):
    title: str
    minutes: Optional[int] = None
    position: Optional[int] = None


class BulkEntry(BaseModel):
    title: str
    minutes: Optional[int] = None


class AddItemsRequest(ActorRequest):
    items: List[BulkEntry]


class ReorderRequest(ActorRequest):
    positions: List[int]


class MoveRequest(ActorRequest):
    from_position: int
    to_position: int


class SwapRequest(ActorRequest):
    first: int
    second: int


class DurationRequest(ActorRequest):
    minutes: int


class TimeMonitoringRequest(ActorRequest):
    enabled: Optional[bool] = None
    warning_threshold: Optional[float] = None
    overtime_threshold: Optional[float] = None


class SectionRequest(ActorRequest):
    values: Dict[str, Any]


class ResetRequest(ActorRequest):
    section: Optional[str] = None


class GlobalTimeMonitoringRequest(BaseModel):
    enabled: Optional[bool] = None
    warning_threshold: Optional[float] = None
    overtime_threshold: Optional[float] = None


class LanguageRequest(BaseModel):
    language: str


class ReactionRequest(BaseModel):
    message_id: int
    reaction: str


class CommandResponse(BaseModel):
    success: bool
    message: str
    error: Optional[str] = None
    data: Dict[str, Any] = {}


class MessageResponse(BaseModel):
    id: int
    room_id: str
    sender_name: str
    content: str
    timestamp: str
    silent: bool
    message_type: str


class HeartbeatStatus(BaseModel):
    running: bool
    sweeping: bool
    interval: float
    sweep_count: int
    last_report: Optional[Dict[str, Any]] = None


def _respond(result: CommandResult) -> CommandResponse:
    """Map an unsuccessful result to its HTTP status."""
    if not result.success:
        raise HTTPException(status_code=ERROR_STATUS.get(result.error, 400), detail=result.to_dict())
    return CommandResponse(**result.to_dict())


# ============ Agenda Endpoints ============

@app.get("/api/rooms/{room_id}/agenda", response_model=CommandResponse)
async def get_agenda(room_id: str):
    """Get the agenda status without posting it to the room."""
    return _respond(orchestrator.get_status(room_id, post=False))


@app.get("/api/rooms/{room_id}/agenda/export", response_model=CommandResponse)
async def export_agenda(room_id: str):
    """Get the agenda with timing statistics."""
    return _respond(orchestrator.export_agenda(room_id))


@app.post("/api/rooms/{room_id}/agenda/items", response_model=CommandResponse)
async def add_item(room_id: str, request: AddItemRequest):
    """Add an agenda item."""
    return _respond(orchestrator.add_item(
        room_id, request.to_role(), request.title, request.minutes, request.position
    ))


@app.post("/api/rooms/{room_id}/agenda/items/bulk", response_model=CommandResponse)
async def add_items(room_id: str, request: AddItemsRequest):
    """Add several agenda items at once."""
    entries = [(entry.title, entry.minutes) for entry in request.items]
    return _respond(orchestrator.add_items(room_id, request.to_role(), entries))


@app.post("/api/rooms/{room_id}/agenda/complete", response_model=CommandResponse)
async def complete_current(room_id: str, request: ActorRequest):
    """Complete the current item and move to the next one."""
    return _respond(orchestrator.complete_item(room_id, request.to_role()))


@app.post("/api/rooms/{room_id}/agenda/items/{position}/complete", response_model=CommandResponse)
async def complete_item(room_id: str, position: int, request: ActorRequest):
    """Complete the item at a position."""
    return _respond(orchestrator.complete_item(room_id, request.to_role(), position))


@app.post("/api/rooms/{room_id}/agenda/items/{position}/reopen", response_model=CommandResponse)
async def reopen_item(room_id: str, position: int, request: ActorRequest):
    """Reopen a completed item."""
    return _respond(orchestrator.reopen_item(room_id, request.to_role(), position))


@app.post("/api/rooms/{room_id}/agenda/items/{position}/current", response_model=CommandResponse)
async def set_current_item(room_id: str, position: int, request: ActorRequest):
    """Make an item the current one."""
    return _respond(orchestrator.set_current_item(room_id, request.to_role(), position))


@app.post("/api/rooms/{room_id}/agenda/items/{position}/remove", response_model=CommandResponse)
async def remove_item(room_id: str, position: int, request: ActorRequest):
    """Remove an item and close the gap."""
    return _respond(orchestrator.remove_item(room_id, request.to_role(), position))


@app.put("/api/rooms/{room_id}/agenda/items/{position}/duration", response_model=CommandResponse)
async def update_duration(room_id: str, position: int, request: DurationRequest):
    """Change an item's planned minutes."""
    return _respond(orchestrator.update_duration(room_id, request.to_role(), position, request.minutes))


@app.post("/api/rooms/{room_id}/agenda/reorder", response_model=CommandResponse)
async def reorder_items(room_id: str, request: ReorderRequest):
    """Reorder the whole agenda."""
    return _respond(orchestrator.reorder_items(room_id, request.to_role(), request.positions))


@app.post("/api/rooms/{room_id}/agenda/move", response_model=CommandResponse)
async def move_item(room_id: str, request: MoveRequest):
    """Move one item to another position."""
    return _respond(orchestrator.move_item(
        room_id, request.to_role(), request.from_position, request.to_position
    ))


@app.post("/api/rooms/{room_id}/agenda/swap", response_model=CommandResponse)
async def swap_items(room_id: str, request: SwapRequest):
    """Swap two items."""
    return _respond(orchestrator.swap_items(room_id, request.to_role(), request.first, request.second))


@app.post("/api/rooms/{room_id}/agenda/cleanup", response_model=CommandResponse)
async def cleanup(room_id: str, request: ActorRequest):
    """Remove completed items."""
    return _respond(orchestrator.cleanup(room_id, request.to_role()))


@app.post("/api/rooms/{room_id}/agenda/clear", response_model=CommandResponse)
async def clear_agenda(room_id: str, request: ActorRequest):
    """Remove every item."""
    return _respond(orchestrator.clear_agenda(room_id, request.to_role()))


# ============ Room Configuration Endpoints ============

@app.get("/api/rooms/{room_id}/config")
async def get_room_config(room_id: str):
    """Effective settings of every section plus metadata."""
    room_configs = orchestrator.room_configs
    return {
        "metadata": room_configs.get_metadata(room_id),
        config.SECTION_TIME_MONITORING: room_configs.get_time_monitoring_config(room_id).to_dict(),
        config.SECTION_RESPONSE: room_configs.get_response_settings(room_id),
        config.SECTION_AGENDA_LIMITS: room_configs.get_agenda_limits(room_id),
        config.SECTION_AUTO_BEHAVIORS: room_configs.get_auto_behaviors(room_id),
        config.SECTION_EMOJIS: room_configs.get_custom_emojis(room_id),
    }


@app.get("/api/rooms/{room_id}/config/time-monitoring", response_model=CommandResponse)
async def get_time_monitoring(room_id: str):
    """Effective time monitoring settings of a room."""
    return _respond(orchestrator.get_time_monitoring_status(room_id, post=False))


@app.put("/api/rooms/{room_id}/config/time-monitoring", response_model=CommandResponse)
async def configure_time_monitoring(room_id: str, request: TimeMonitoringRequest):
    """Override time monitoring settings; omitted values are kept."""
    return _respond(orchestrator.configure_time_monitoring(
        room_id, request.to_role(), request.enabled, request.warning_threshold, request.overtime_threshold
    ))


@app.put("/api/rooms/{room_id}/config/{section}", response_model=CommandResponse)
async def configure_section(room_id: str, section: str, request: SectionRequest):
    """Partially update a configuration section."""
    return _respond(orchestrator.configure_room_section(room_id, request.to_role(), section, request.values))


@app.post("/api/rooms/{room_id}/config/reset", response_model=CommandResponse)
async def reset_room_config(room_id: str, request: ResetRequest):
    """Reset the room, or one section, to global defaults."""
    return _respond(orchestrator.reset_room_config(room_id, request.to_role(), request.section))


@app.put("/api/rooms/{room_id}/language")
async def set_room_language(room_id: str, request: LanguageRequest):
    """Remember the room's language for background messages."""
    orchestrator.room_configs.set_room_language(room_id, request.language)
    return {"status": "updated", "room_id": room_id, "language": request.language}


@app.get("/api/settings/time-monitoring")
async def get_global_time_monitoring():
    """Global time monitoring defaults."""
    return orchestrator.room_configs.get_global_time_monitoring_config().to_dict()


@app.put("/api/settings/time-monitoring")
async def set_global_time_monitoring(request: GlobalTimeMonitoringRequest):
    """Update global time monitoring defaults."""
    partial = request.model_dump(exclude_none=True)
    return orchestrator.room_configs.set_global_time_monitoring_config(partial).to_dict()


# ============ Call Lifecycle Endpoints ============

@app.post("/api/rooms/{room_id}/call/started", response_model=CommandResponse)
async def call_started(room_id: str):
    """A call started in the room."""
    return _respond(orchestrator.call_started(room_id))


@app.post("/api/rooms/{room_id}/call/ended", response_model=CommandResponse)
async def call_ended(room_id: str):
    """The call in the room ended."""
    return _respond(orchestrator.call_ended(room_id))


@app.post("/api/rooms/{room_id}/reactions", response_model=CommandResponse)
async def add_reaction(room_id: str, request: ReactionRequest):
    """A participant reacted to a bot message."""
    return _respond(orchestrator.handle_reaction(room_id, request.message_id, request.reaction))


# ============ Message Endpoints ============

@app.get("/api/rooms/{room_id}/messages", response_model=List[MessageResponse])
async def get_room_messages(room_id: str, since: Optional[int] = None):
    """Get messages the bot posted, optionally after a message ID."""
    messages = message_service.get_messages(room_id, since)
    return [
        MessageResponse(
            id=m.id,
            room_id=m.room_id,
            sender_name=m.sender_name,
            content=m.content,
            timestamp=m.timestamp.isoformat() if m.timestamp else "",
            silent=m.silent,
            message_type=m.message_type
        )
        for m in messages
    ]


@app.delete("/api/rooms/{room_id}/messages")
async def clear_room_messages(room_id: str):
    """Clear all messages in a room."""
    message_service.clear_messages(room_id)
    return {"status": "cleared", "room_id": room_id}


# ============ Heartbeat Endpoints ============

@app.get("/api/heartbeat/status", response_model=HeartbeatStatus)
async def get_heartbeat_status():
    """Get heartbeat service status."""
    return HeartbeatStatus(**heartbeat_service.get_status())


@app.post("/api/heartbeat/start")
async def start_heartbeat():
    """Start the heartbeat service."""
    heartbeat_service.start()
    return {"status": "started"}


@app.post("/api/heartbeat/stop")
async def stop_heartbeat():
    """Stop the heartbeat service."""
    heartbeat_service.stop()
    return {"status": "stopped"}


@app.post("/api/heartbeat/run")
async def run_heartbeat_once():
    """Run one monitoring sweep now."""
    report = heartbeat_service.run_once()
    if report is None:
        raise HTTPException(status_code=409, detail="A sweep is already running")
    return report.to_dict()


# ============ Health Check ============

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "heartbeat_running": heartbeat_service.is_running if heartbeat_service else False,
        "check_interval": heartbeat_service.get_interval() if heartbeat_service else None
    }
