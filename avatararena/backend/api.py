"""FastAPI endpoints for players, battles, the leaderboard and admin tools."""

from __future__ import annotations

import logging
import random
from collections import defaultdict
from typing import Any, Literal

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .admin import AdminService
from .avatars import AvatarResolver, DefaultAvatarResolver
from .battles import BattleService
from .config import BackendSettings, load_settings
from .errors import ArenaError
from .leaderboard import LeaderboardService
from .ledger import PlayerLedger
from .opponents import OpponentGenerator
from .security import AdminPolicy, HeaderIdentityProvider, IdentityProvider, require_username
from .store import KeyValueStore, create_store

logger = logging.getLogger(__name__)

DifficultyName = Literal["easy", "medium", "hard"]
ActionName = Literal["attack", "defend", "special", "heal"]


class DifficultyRequest(BaseModel):
    difficulty: DifficultyName = "medium"


class PreviewRequest(BaseModel):
    difficulty: DifficultyName = "medium"
    reroll: bool = False


class BattleActionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    battle_id: str = Field(alias="battleId", min_length=1)
    action: ActionName
    advance_enemy: bool = Field(default=False, alias="advanceEnemy")


class PartialStats(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: int | None = Field(default=None, ge=1)
    experience: int | None = Field(default=None, ge=0)
    experienceToNext: int | None = Field(default=None, ge=1)
    hitPoints: int | None = Field(default=None, ge=0)
    maxHitPoints: int | None = Field(default=None, ge=1)
    specialPoints: int | None = Field(default=None, ge=0)
    maxSpecialPoints: int | None = Field(default=None, ge=0)
    attack: int | None = Field(default=None, ge=0)
    defense: int | None = Field(default=None, ge=0)
    skillPoints: int | None = Field(default=None, ge=0)
    gold: int | None = Field(default=None, ge=0)


class UpdatePlayerRequest(BaseModel):
    stats: PartialStats


class PlayerResponse(BaseModel):
    playerCharacter: dict[str, Any]


class BattleStateResponse(BaseModel):
    battleState: dict[str, Any]


class EnemyResponse(BaseModel):
    enemy: dict[str, Any]


class PreviewResponse(BaseModel):
    enemy: dict[str, Any]
    difficulty: str
    levelDifference: int
    expectedRewards: dict[str, Any]


class BattleActionResponse(BaseModel):
    battleState: dict[str, Any]
    playerTurn: dict[str, Any] | None = None
    enemyTurn: dict[str, Any] | None = None
    battleEnded: bool
    winner: str | None = None
    rewards: dict[str, Any] | None = None


class LeaderboardResponse(BaseModel):
    leaderboard: list[dict[str, Any]]
    playerRank: int
    totalPlayers: int
    isCurrentPlayerIncluded: bool


class AdminResultResponse(BaseModel):
    message: str
    count: int
    usernames: list[str] = Field(default_factory=list)


class AdminListingResponse(BaseModel):
    entries: list[dict[str, Any]]


class BattleWebSocketHub:
    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, battle_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections[battle_id].add(websocket)

    def disconnect(self, battle_id: str, websocket: WebSocket) -> None:
        connections = self._connections.get(battle_id)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            self._connections.pop(battle_id, None)

    async def send_battle(self, websocket: WebSocket, battle: dict[str, Any]) -> None:
        await websocket.send_json({"type": "battle.full", "battle": battle})

    async def broadcast_battle(self, battle_id: str, battle: dict[str, Any]) -> None:
        stale_connections: list[WebSocket] = []
        for websocket in self._connections.get(battle_id, set()):
            try:
                await self.send_battle(websocket, battle)
            except RuntimeError:
                stale_connections.append(websocket)
        for websocket in stale_connections:
            self.disconnect(battle_id=battle_id, websocket=websocket)


def _default_store(settings: BackendSettings) -> KeyValueStore:
    return create_store(database_url=settings.database_url, redis_url=settings.redis_url)


def create_app(
    store: KeyValueStore | None = None,
    settings: BackendSettings | None = None,
    identity: IdentityProvider | None = None,
    avatars: AvatarResolver | None = None,
    admin_policy: AdminPolicy | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    app_settings = settings if settings is not None else load_settings()
    kv_store = store if store is not None else _default_store(app_settings)
    identity_provider = identity if identity is not None else HeaderIdentityProvider()
    avatar_resolver = avatars if avatars is not None else DefaultAvatarResolver()
    policy = admin_policy if admin_policy is not None else AdminPolicy.from_usernames(app_settings.admin_usernames)
    shared_rng = rng if rng is not None else random.Random()

    ledger = PlayerLedger(store=kv_store, avatars=avatar_resolver)
    leaderboard = LeaderboardService(store=kv_store, ledger=ledger, size=app_settings.leaderboard_size)
    opponents = OpponentGenerator(store=kv_store, ledger=ledger, avatars=avatar_resolver, rng=shared_rng)
    battles = BattleService(
        store=kv_store,
        ledger=ledger,
        opponents=opponents,
        leaderboard=leaderboard,
        rng=shared_rng,
    )
    admin = AdminService(
        store=kv_store,
        ledger=ledger,
        leaderboard=leaderboard,
        avatars=avatar_resolver,
        policy=policy,
        rng=shared_rng,
    )

    app = FastAPI(title="Avatar Arena API", version="0.3.0")
    websocket_hub = BattleWebSocketHub()
    app.state.websocket_hub = websocket_hub
    app.state.battles = battles
    app.state.leaderboard = leaderboard

    @app.exception_handler(ArenaError)
    async def arena_error_handler(_request: Request, exc: ArenaError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(ValueError)
    async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    def current_username(request: Request) -> str:
        return require_username(identity_provider, request)

    async def publish_battle(battle_id: str, battle: dict[str, Any]) -> None:
        await websocket_hub.broadcast_battle(battle_id=battle_id, battle=battle)

    @app.get("/api/player", response_model=PlayerResponse)
    def get_player(username: str = Depends(current_username)) -> PlayerResponse:
        return PlayerResponse(playerCharacter=ledger.get_or_create(username).to_dict())

    @app.post("/api/player/update", response_model=PlayerResponse)
    def update_player(
        payload: UpdatePlayerRequest,
        username: str = Depends(current_username),
    ) -> PlayerResponse:
        partial = payload.stats.model_dump(exclude_none=True)
        return PlayerResponse(playerCharacter=ledger.update(username, partial).to_dict())

    @app.post("/api/player/reset", response_model=PlayerResponse)
    def reset_player(username: str = Depends(current_username)) -> PlayerResponse:
        return PlayerResponse(playerCharacter=ledger.reset(username, preserve_avatar=True).to_dict())

    @app.get("/api/enemy", response_model=EnemyResponse)
    def get_enemy(username: str = Depends(current_username)) -> EnemyResponse:
        player = ledger.get_or_create(username)
        return EnemyResponse(enemy=opponents.generate(player, "medium").to_dict())

    @app.post("/api/enemy/preview", response_model=PreviewResponse)
    def preview_enemy(
        payload: PreviewRequest,
        username: str = Depends(current_username),
    ) -> PreviewResponse:
        player = ledger.get_or_create(username)
        preview = opponents.preview(player, payload.difficulty, reroll=payload.reroll)
        return PreviewResponse(**preview.to_dict())

    @app.post("/api/battle/start", response_model=BattleStateResponse)
    def start_battle(
        payload: DifficultyRequest,
        username: str = Depends(current_username),
    ) -> BattleStateResponse:
        battle = battles.start(username, payload.difficulty)
        return BattleStateResponse(battleState=battle.to_dict())

    @app.get("/api/battle/{battle_id}", response_model=BattleStateResponse)
    def get_battle(battle_id: str, username: str = Depends(current_username)) -> BattleStateResponse:
        return BattleStateResponse(battleState=battles.get(battle_id, username).to_dict())

    @app.post("/api/battle/action", response_model=BattleActionResponse)
    async def post_action(
        payload: BattleActionRequest,
        username: str = Depends(current_username),
    ) -> BattleActionResponse:
        if payload.advance_enemy:
            result = battles.submit_round(payload.battle_id, payload.action, username)
        else:
            result = battles.submit_player_action(payload.battle_id, payload.action, username)
        body = result.to_dict()
        await publish_battle(battle_id=payload.battle_id, battle=body["battleState"])
        return BattleActionResponse(**body)

    @app.post("/api/battle/{battle_id}/enemy-turn", response_model=BattleActionResponse)
    async def post_enemy_turn(
        battle_id: str,
        username: str = Depends(current_username),
    ) -> BattleActionResponse:
        body = battles.submit_enemy_turn(battle_id, username).to_dict()
        await publish_battle(battle_id=battle_id, battle=body["battleState"])
        return BattleActionResponse(**body)

    @app.get("/api/leaderboard", response_model=LeaderboardResponse)
    def get_leaderboard(username: str = Depends(current_username)) -> LeaderboardResponse:
        return LeaderboardResponse(**leaderboard.query(username).to_dict())

    @app.post("/api/admin/create-test-entries", response_model=AdminResultResponse)
    def create_test_entries(username: str = Depends(current_username)) -> AdminResultResponse:
        created = admin.seed_test_entries(username)
        return AdminResultResponse(message="Test entries created", count=len(created), usernames=created)

    @app.delete("/api/admin/remove-test-entries", response_model=AdminResultResponse)
    def remove_test_entries(username: str = Depends(current_username)) -> AdminResultResponse:
        removed = admin.remove_test_entries(username)
        return AdminResultResponse(message="Test entries removed", count=len(removed), usernames=removed)

    @app.delete("/api/admin/nuclear-cleanup-leaderboard", response_model=AdminResultResponse)
    def wipe_leaderboard(username: str = Depends(current_username)) -> AdminResultResponse:
        count = admin.wipe_leaderboard(username)
        return AdminResultResponse(message="Leaderboard index wiped", count=count)

    @app.post("/api/admin/reset-all-players", response_model=AdminResultResponse)
    def reset_all_players(username: str = Depends(current_username)) -> AdminResultResponse:
        reset = admin.reset_all_players(username)
        return AdminResultResponse(message="Players reset", count=len(reset), usernames=reset)

    @app.post("/api/admin/players/{target}/reset", response_model=PlayerResponse)
    def admin_reset_player(target: str, username: str = Depends(current_username)) -> PlayerResponse:
        return PlayerResponse(playerCharacter=admin.reset_player(username, target).to_dict())

    @app.get("/api/admin/debug-leaderboard", response_model=AdminListingResponse)
    def debug_leaderboard(username: str = Depends(current_username)) -> AdminListingResponse:
        return AdminListingResponse(entries=admin.list_leaderboard(username))

    @app.websocket("/ws/battles/{battle_id}")
    async def battle_ws(websocket: WebSocket, battle_id: str) -> None:
        username = identity_provider.current_username(websocket)
        if username is None:
            await websocket.close(code=1008)
            return
        try:
            battle = battles.get(battle_id, username)
        except ArenaError:
            await websocket.close(code=1008)
            return

        await websocket_hub.connect(battle_id=battle_id, websocket=websocket)
        await websocket_hub.send_battle(websocket=websocket, battle=battle.to_dict())

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            websocket_hub.disconnect(battle_id=battle_id, websocket=websocket)

    return app


app = create_app()
