# tablepos/routers/menu.py

from fastapi import APIRouter, Depends

from tablepos.core.deps import get_context
from tablepos.schemas.menu import MenuCategory

router = APIRouter(prefix="/menu", tags=["Menu"])


@router.get("", response_model=list[MenuCategory])
def get_menu(ctx=Depends(get_context)):
    return list(ctx.menu.categories)
