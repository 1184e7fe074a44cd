from fastapi import APIRouter, Depends

from portfolio_api.api.dependencies import get_account_service, require_admin
from portfolio_api.services.accounts import AccountService


router = APIRouter(dependencies=[Depends(require_admin)])


@router.patch("/user/block-unblock/{account_id}")
def block_unblock(account_id: str, service: AccountService = Depends(get_account_service)) -> dict:
    """ADMIN: Flip the block on an account; blocking lasts two days unless lifted earlier."""
    user = service.toggle_block(account_id)
    message = "User blocked successfully" if user["is_blocked"] else "User unblocked successfully"
    return {"success": True, "message": message, "data": user}
