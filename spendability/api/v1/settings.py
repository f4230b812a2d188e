"""GET/PUT /v1/settings - Versioned settings document"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from spendability.api.dependencies import get_request_id
from spendability.api.v1.schemas import SettingsResponse, SettingsUpdateRequest, ValidationSchema
from spendability.domain.settings_schema import ensure_required_fields, validate
from spendability.infrastructure.database.repositories import SettingsRepository
from spendability.infrastructure.database.session import get_db

router = APIRouter()


def _response(user_id: str, document: dict) -> SettingsResponse:
    result = validate(document)
    return SettingsResponse(
        user_id=user_id,
        settings=document,
        validation=ValidationSchema(valid=result.valid, errors=result.errors, warnings=result.warnings),
    )


@router.get("/settings", response_model=SettingsResponse)
def get_settings(
    user_id: str = Query(..., min_length=1, description="User identifier"),
    db: Session = Depends(get_db),
):
    """
    Load the user's settings migrated to the current schema.

    Users who never saved settings get the defaults.
    """
    document = SettingsRepository(db).load(user_id)
    return _response(user_id, ensure_required_fields(document))


@router.put("/settings", response_model=SettingsResponse)
def put_settings(
    request_body: SettingsUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Save settings, keeping protected values the update left empty.

    The stored document is returned with its validation result; invalid
    documents are still saved so the user can finish filling them in.
    """
    request_id = get_request_id(request)

    try:
        document = SettingsRepository(db).save(request_body.user_id, request_body.settings)
        db.commit()
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id, "user_id": request_body.user_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    logging.info("Settings saved", extra={"request_id": request_id, "user_id": request_body.user_id})
    return _response(request_body.user_id, document)
