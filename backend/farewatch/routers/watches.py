"""Price watch router — CRUD, manual trigger and sweep."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from farewatch.config import settings
from farewatch.dependencies import get_trigger_service, get_watch_store
from farewatch.exceptions import InactiveWatchError, WatchConflictError, WatchNotFoundError
from farewatch.schemas.watch import CreateWatchRequest, UpdateWatchRequest, WatchResponse
from farewatch.services.watch_store import WatchStore
from farewatch.services.watch_trigger_service import WatchTriggerService, outcome_to_payload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/watches", response_model=WatchResponse, status_code=201)
async def create_watch(
    req: CreateWatchRequest,
    store: WatchStore = Depends(get_watch_store),
):
    """Create a price watch."""
    fields = req.model_dump()
    fields["provider"] = fields["provider"] or settings.default_provider
    return await store.create(fields)


@router.get("/watches")
async def list_watches(
    user_id: str = Query("anon"),
    store: WatchStore = Depends(get_watch_store),
):
    """List a user's watches, newest first."""
    watches = await store.list_for_user(user_id)
    return {
        "watches": [WatchResponse.model_validate(w).model_dump(by_alias=True, mode="json") for w in watches],
        "count": len(watches),
    }


@router.get("/watches/{watch_id}", response_model=WatchResponse)
async def get_watch(
    watch_id: str,
    store: WatchStore = Depends(get_watch_store),
):
    watch = await store.get(watch_id)
    if watch is None:
        raise HTTPException(status_code=404, detail="Watch not found")
    return watch


@router.patch("/watches/{watch_id}", response_model=WatchResponse)
async def update_watch(
    watch_id: str,
    req: UpdateWatchRequest,
    store: WatchStore = Depends(get_watch_store),
):
    """Toggle a watch or edit its target, email, stops or flexibility."""
    changes = req.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")
    try:
        return await store.update(watch_id, changes)
    except WatchNotFoundError:
        raise HTTPException(status_code=404, detail="Watch not found")
    except WatchConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/watches/{watch_id}", status_code=204)
async def delete_watch(
    watch_id: str,
    store: WatchStore = Depends(get_watch_store),
):
    deleted = await store.delete(watch_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Watch not found")
    return Response(status_code=204)


@router.post("/watches/run")
async def run_sweep(
    service: WatchTriggerService = Depends(get_trigger_service),
):
    """Trigger every active watch once."""
    return await service.run_all_active()


@router.post("/watches/{watch_id}/trigger")
async def trigger_watch(
    watch_id: str,
    service: WatchTriggerService = Depends(get_trigger_service),
):
    """Search fares for one watch and notify if the price qualifies."""
    try:
        outcome = await service.trigger(watch_id)
    except WatchNotFoundError:
        raise HTTPException(status_code=404, detail="Watch not found")
    except InactiveWatchError:
        raise HTTPException(status_code=400, detail="Watch is not active")
    except WatchConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception:
        logger.exception(f"Error triggering watch {watch_id}")
        raise HTTPException(status_code=500, detail="Internal server error")
    return outcome_to_payload(outcome)
