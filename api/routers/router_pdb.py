# api/routers/router_pdb.py
from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse, Response
from loguru import logger

from api.services.structure_fetcher import structure_fetcher
from lib.errors import InvalidIdentifierError, StructureNotFoundError
from lib.formats import StructureFormat, media_type

router_pdb = APIRouter()


@router_pdb.get("/{pdb_id}")
def get_structure(pdb_id: str):
    """mmCIF for any structure, from the local cache, RCSB or PDBe."""
    try:
        text = structure_fetcher.fetch_mmcif(pdb_id)
    except InvalidIdentifierError as ie:
        raise HTTPException(status_code=400, detail=str(ie))
    except StructureNotFoundError as nf:
        logger.warning(str(nf))
        return JSONResponse(
            status_code=404,
            content={
                "detail": f"Failed to fetch structure {pdb_id} from all sources",
                "details": nf.errors[-1] if nf.errors else None,
                "pdbId": pdb_id,
                "format": StructureFormat.MMCIF.value,
            },
        )

    return Response(
        content=text,
        media_type=media_type(StructureFormat.MMCIF),
        headers={
            "Content-Disposition": f'inline; filename="{pdb_id}.cif"',
            "Cache-Control": "public, max-age=86400",
            "X-Structure-Format": StructureFormat.MMCIF.value,
        },
    )


@router_pdb.get("/{pdb_id}/validate")
def validate_structure(pdb_id: str):
    return structure_fetcher.validate(pdb_id)
