"""
Discriminator directory router.
"""
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from ..database.errors import DatabaseError, DataParsingError
from ..dependencies.directory import get_query_handler
from ..utils.directory_query import DirectoryQueryHandler, DiscriminatorsNotFoundError
from ..utils.logging_config import setup_logging
from ..utils.solana_error import InvalidAddressError, TransportError

# Configure logging
logger = setup_logging(__name__)

router = APIRouter(
    prefix="",
    tags=["Directory"],
    responses={404: {"description": "Not found"}},
)

Byte = Annotated[int, Field(ge=0, le=255)]


# Models
class DiscriminatorUploadRequest(BaseModel):
    discriminator_data: List[Byte]
    instruction_data: Optional[List[Byte]] = None


class InstructionResponse(BaseModel):
    id: str
    instruction_id: str
    instruction_data: List[int]


class DiscriminatorResponse(BaseModel):
    id: str
    discriminator_id: str
    discriminator_data: List[int]
    instruction: InstructionResponse
    user_id: str
    program_id: str


@router.post("/upload_discriminator/{program_id}")
async def upload_discriminator(
    program_id: str,
    request: DiscriminatorUploadRequest,
    user_id: Optional[str] = Header(None, alias="user_id", convert_underscores=False),
    handler: DirectoryQueryHandler = Depends(get_query_handler),
):
    """
    Upload a discriminator and its instruction payload for a program.
    The uploader is identified by the user_id header.
    """
    if not user_id:
        raise HTTPException(status_code=400, detail="Missing user_id header")

    try:
        await handler.upload_discriminator(
            program_id,
            bytes(request.discriminator_data),
            bytes(request.instruction_data or []),
            user_id,
        )
    except DataParsingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DatabaseError as e:
        logger.error(f"Error uploading discriminator to DB: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload discriminator to DB")

    return {"status": "Discriminator uploaded successfully"}


@router.get("/query_discriminators/{program_id}", response_model=List[DiscriminatorResponse])
async def query_discriminators(
    program_id: str,
    handler: DirectoryQueryHandler = Depends(get_query_handler),
):
    """
    List the discriminators of a program. When none are stored yet they are
    read from the program's current accounts first.
    """
    try:
        discriminators = await handler.query_discriminators(program_id)
    except DiscriminatorsNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidAddressError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (DatabaseError, TransportError) as e:
        logger.error(f"Error querying discriminators for {program_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return [discriminator.to_dict() for discriminator in discriminators]


@router.get("/query_instructions/{discriminator_id}", response_model=List[str])
async def query_instructions(
    discriminator_id: str,
    handler: DirectoryQueryHandler = Depends(get_query_handler),
):
    """
    List the hex instruction payloads recorded under a discriminator.
    """
    try:
        return await handler.query_instructions(discriminator_id)
    except DatabaseError as e:
        logger.error(f"Error querying instructions: {e}")
        raise HTTPException(status_code=500, detail="Failed to query instructions")
