from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..database import get_db
from ..models import MaterialCategory

router = APIRouter(prefix="/materials", tags=["materials"])

# Starter catalog for new workshops. Prices are placeholders the workshop edits.
DEFAULT_MATERIALS = {
    MaterialCategory.FABRIC: [
        ("Algodón Jersey", 1, "m"),
        ("Algodón Piqué", 1, "m"),
        ("Algodón Frizado (o Franela)", 1, "m"),
        ("Algodón Frizado Sintético", 1, "m"),
        ("Kaki Algodón", 1, "m"),
        ("Algodón Fulldicra", 1, "m"),
        ("Dri-FIT", 1, "m"),
        ("Poliadidas (Poliamida/Nylon)", 1, "m"),
        ("Polibrillo", 1, "m"),
        ("Vanisado", 1, "m"),
        ("Impala", 1, "m"),
        ("Tafetán", 1, "m"),
        ("Taslan", 1, "m"),
        ("Fibra", 1, "m"),
        ("Jean (o Denim)", 1, "m"),
        ("Kaki Drill", 1, "m"),
        ("Lycra Dicra (o Kaki Lycra)", 1, "m"),
        ("Polar (o Tela Polar)", 1, "m"),
        ("Prada", 1, "m"),
        ("Popelina", 1, "m"),
        ("Jaipura", 1, "m"),
        ("Denim", 1, "m"),
        ("Lino", 1, "m"),
    ],
    MaterialCategory.ACCESSORY: [
        ("Cierre", 1, "piece"),
        ("Botón", 1, "piece"),
        ("Cordón de Algodón", 1.5, "m"),
        ("Elástico", 1, "piece"),
        ("Ojales", 1, "piece"),
        ("Forros", 1, "piece"),
        ("Elástico", 1, "m"),
        ("Cierre Metálico", 1, "piece"),
        ("Botón a Presión", 1, "piece"),
    ],
    MaterialCategory.PRINT: [
        ("Serigrafía", 1, "fixed"),
        ("Bordado", 1, "fixed"),
        ("DTF", 1, "fixed"),
        ("Sublimación", 1, "fixed"),
    ],
}


def seed_catalog(db: Session, user: models.User) -> int:
    """Add the default catalog for a workshop that has none. Returns rows added."""
    has_any = db.query(models.CatalogMaterial).filter(models.CatalogMaterial.user_id == user.id).first()
    if has_any:
        return 0
    added = 0
    for category, entries in DEFAULT_MATERIALS.items():
        for name, price, unit in entries:
            db.add(models.CatalogMaterial(
                user_id=user.id, category=category.value, name=name, price=price, unit=unit,
            ))
            added += 1
    db.commit()
    return added


def _get_owned(material_id: int, user: models.User, db: Session) -> models.CatalogMaterial:
    material = db.query(models.CatalogMaterial).filter(
        models.CatalogMaterial.id == material_id,
        models.CatalogMaterial.user_id == user.id,
    ).first()
    if not material:
        raise HTTPException(status_code=404, detail="Material not found")
    return material


@router.get("/seed")
def seed_materials(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Seed the default catalog. No-op when the workshop already has materials."""
    return {"ok": True, "seeded": seed_catalog(db, current_user)}


@router.get("/", response_model=List[schemas.CatalogMaterial])
def list_materials(
    category: MaterialCategory = None,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(models.CatalogMaterial).filter(models.CatalogMaterial.user_id == current_user.id)
    if category:
        query = query.filter(models.CatalogMaterial.category == category.value)
    return query.order_by(models.CatalogMaterial.category, models.CatalogMaterial.id).all()


@router.post("/", response_model=schemas.CatalogMaterial)
def create_material(
    material: schemas.CatalogMaterialCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = material.model_dump()
    data["category"] = material.category.value
    db_material = models.CatalogMaterial(user_id=current_user.id, **data)
    db.add(db_material)
    db.commit()
    db.refresh(db_material)
    return db_material


@router.patch("/{material_id}", response_model=schemas.CatalogMaterial)
def update_material(
    material_id: int,
    update: schemas.CatalogMaterialUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    material = _get_owned(material_id, current_user, db)
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(material, field, value)
    db.commit()
    db.refresh(material)
    return material


@router.delete("/{material_id}")
def delete_material(
    material_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    material = _get_owned(material_id, current_user, db)
    db.delete(material)
    db.commit()
    return {"ok": True}
