from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from examanalyzer.app.services.storage.papers import SYLLABUS_TEMPLATES, PaperStore

router = APIRouter(tags=["Syllabi"])


class SyllabusCreate(BaseModel):
    name: str
    exam_type: str
    topics: List[str] = []
    description: Optional[str] = None


class SyllabusUpdate(BaseModel):
    name: Optional[str] = None
    exam_type: Optional[str] = None
    topics: Optional[List[str]] = None
    description: Optional[str] = None


@router.get("/syllabi")
def list_syllabi():
    return [s.model_dump() for s in PaperStore().list_syllabi()]


@router.post("/syllabi", status_code=201)
def create_syllabus(payload: SyllabusCreate):
    if not payload.name.strip() or not payload.exam_type.strip():
        raise HTTPException(status_code=400, detail="Please fill in all required fields")
    syllabus = PaperStore().create_syllabus(
        name=payload.name.strip(),
        exam_type=payload.exam_type.strip(),
        topics=payload.topics,
        description=payload.description,
    )
    return syllabus.model_dump()


@router.get("/syllabi/templates")
def list_templates():
    return [{"index": i, **template} for i, template in enumerate(SYLLABUS_TEMPLATES)]


@router.post("/syllabi/templates/{index}", status_code=201)
def create_from_template(index: int):
    """Copy one of the starter syllabi into the user's list."""
    if index < 0 or index >= len(SYLLABUS_TEMPLATES):
        raise HTTPException(status_code=404, detail="Template not found")
    template = SYLLABUS_TEMPLATES[index]
    return PaperStore().create_syllabus(**template).model_dump()


@router.get("/syllabi/{syllabus_id}")
def get_syllabus(syllabus_id: str):
    syllabus = PaperStore().get_syllabus(syllabus_id)
    if syllabus is None:
        raise HTTPException(status_code=404, detail="Syllabus not found")
    return syllabus.model_dump()


@router.put("/syllabi/{syllabus_id}")
def update_syllabus(syllabus_id: str, payload: SyllabusUpdate):
    syllabus = PaperStore().update_syllabus(syllabus_id, **payload.model_dump(exclude_unset=True))
    if syllabus is None:
        raise HTTPException(status_code=404, detail="Syllabus not found")
    return syllabus.model_dump()


@router.delete("/syllabi/{syllabus_id}")
def delete_syllabus(syllabus_id: str):
    if not PaperStore().delete_syllabus(syllabus_id):
        raise HTTPException(status_code=404, detail="Syllabus not found")
    return {"success": True, "message": "Syllabus deleted"}
