from fastapi import Header, HTTPException

from src.offer.models import SYSTEM_ACTOR


async def get_actor(x_actor: str = Header()) -> str:
    """Id of the user acting on the request, as forwarded by the gateway."""
    actor = x_actor.strip()
    if not actor:
        raise HTTPException(status_code=400, detail="X-Actor must not be empty")
    if actor == SYSTEM_ACTOR:
        raise HTTPException(
            status_code=400, detail=f"'{SYSTEM_ACTOR}' is reserved for automation"
        )
    return actor
