"""Property repository - Database operations for listings"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Property


class PropertyRepository:
    """Repository for property database operations"""

    @staticmethod
    def get_by_id(db: Session, property_id: int) -> Optional[Property]:
        return db.query(Property).filter(Property.id == property_id).first()

    @staticmethod
    def list_public(
        db: Session,
        city: Optional[str] = None,
        property_type: Optional[str] = None,
        business_mode: Optional[str] = None,
        min_bedrooms: Optional[int] = None,
    ) -> list[Property]:
        query = db.query(Property).filter(Property.is_available.is_(True))
        if city:
            query = query.filter(Property.city.ilike(city))
        if property_type:
            query = query.filter(Property.property_type == property_type)
        if business_mode:
            query = query.filter(Property.business_mode.in_((business_mode, "both")))
        if min_bedrooms is not None:
            query = query.filter(Property.bedrooms >= min_bedrooms)
        return query.order_by(Property.created_at.desc(), Property.id.desc()).all()

    @staticmethod
    def list_admin(db: Session, created_by_id: Optional[int] = None, status: Optional[str] = None) -> list[Property]:
        query = db.query(Property)
        if created_by_id:
            query = query.filter(Property.created_by_id == created_by_id)
        if status:
            query = query.filter(Property.status == status)
        return query.order_by(Property.created_at.desc(), Property.id.desc()).all()

    @staticmethod
    def create(db: Session, **data) -> Property:
        prop = Property(**data)
        db.add(prop)
        db.commit()
        db.refresh(prop)
        return prop

    @staticmethod
    def save(db: Session, prop: Property) -> Property:
        db.commit()
        db.refresh(prop)
        return prop

    @staticmethod
    def delete(db: Session, prop: Property) -> None:
        db.delete(prop)
        db.commit()
