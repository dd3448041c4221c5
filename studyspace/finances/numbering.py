from sqlalchemy import func
from sqlalchemy.orm import Session

def next_number(db: Session, model, column, prefix: str, width: int = 6) -> str:
    """Next sequential human-readable reference, e.g. BK000042"""
    count = db.query(func.count(model.id)).scalar() or 0
    while True:
        count += 1
        candidate = f"{prefix}{count:0{width}d}"
        if not db.query(model.id).filter(column == candidate).first():
            return candidate
