"""
Student directory: token lookup for the scanner, registration for the office.
"""
import logging
import random
import threading
from pathlib import Path
from typing import Dict, List, Optional, Iterable

import pandas as pd

from .models import Entity

logger = logging.getLogger(__name__)

DEFAULT_GUARDIAN_PHONE = "+1 (555) 000-0000"

ROSTER_COLUMNS = ['id', 'name', 'grade', 'parent_name', 'parent_phone', 'photo_url']

SAMPLE_STUDENTS = [
    Entity('STU-001', 'Emma Thompson', '10-A', 'Sarah Thompson', '+1 (555) 010-1001',
           'https://picsum.photos/100/100?random=1'),
    Entity('STU-002', 'Liam Wilson', '10-A', 'James Wilson', '+1 (555) 010-1002',
           'https://picsum.photos/100/100?random=2'),
    Entity('STU-003', 'Olivia Martinez', '11-B', 'Elena Martinez', '+1 (555) 010-1003',
           'https://picsum.photos/100/100?random=3'),
    Entity('STU-004', 'Noah Johnson', '9-C', 'Michael Johnson', '+1 (555) 010-1004',
           'https://picsum.photos/100/100?random=4'),
    Entity('STU-005', 'Ava Brown', '12-A', 'David Brown', '+1 (555) 010-1005',
           'https://picsum.photos/100/100?random=5'),
]

class Directory:
    """Registered students keyed by the id printed in their QR card."""

    def __init__(self, entities: Iterable[Entity] = ()):
        self._entities: Dict[str, Entity] = {}
        self._lock = threading.Lock()
        for entity in entities:
            self.add(entity)

    @classmethod
    def from_roster(cls, roster_path: str) -> "Directory":
        """Load a roster from a CSV or Excel file.

        Expected columns: id, name, grade, parent_name, parent_phone and
        optionally photo_url.
        """
        path = Path(roster_path)
        if path.suffix.lower() in ('.xlsx', '.xls'):
            df = pd.read_excel(path, engine='openpyxl', dtype=str)
        else:
            df = pd.read_csv(path, dtype=str)

        missing = [column for column in ROSTER_COLUMNS[:4] if column not in df.columns]
        if missing:
            raise ValueError(f"Roster {roster_path} is missing columns: {', '.join(missing)}")

        df = df.fillna('')
        directory = cls()
        for row in df.to_dict(orient='records'):
            directory.add(Entity(
                entity_id=row['id'].strip(),
                name=row['name'].strip(),
                group=row['grade'].strip(),
                guardian_name=row['parent_name'].strip(),
                guardian_phone=row.get('parent_phone', '').strip() or DEFAULT_GUARDIAN_PHONE,
                photo_url=row.get('photo_url', '').strip()
            ))

        logger.info(f"Loaded {len(directory)} students from {roster_path}")
        return directory

    def lookup(self, token: str) -> Optional[Entity]:
        """Resolve a scanned token to a student, or None."""
        if token is None:
            return None
        with self._lock:
            return self._entities.get(token.strip())

    def add(self, entity: Entity):
        with self._lock:
            if entity.entity_id in self._entities:
                raise ValueError(f"Duplicate student id: {entity.entity_id}")
            self._entities[entity.entity_id] = entity

    def register(self, name: str, group: str, guardian_name: str,
                 guardian_phone: str = "", photo_url: str = "") -> Entity:
        """Register a new student with a generated STU-xxxxx id."""
        if not name or not group or not guardian_name:
            raise ValueError("Name, grade and parent name are required")

        with self._lock:
            entity_id = f"STU-{random.randint(10000, 99999)}"
            while entity_id in self._entities:
                entity_id = f"STU-{random.randint(10000, 99999)}"

            entity = Entity(
                entity_id=entity_id,
                name=name,
                group=group,
                guardian_name=guardian_name,
                guardian_phone=guardian_phone or DEFAULT_GUARDIAN_PHONE,
                photo_url=photo_url
            )
            self._entities[entity_id] = entity

        logger.info(f"Registered student {name} ({entity_id})")
        return entity

    def all(self) -> List[Entity]:
        with self._lock:
            return list(self._entities.values())

    def search(self, term: str) -> List[Entity]:
        """Case-insensitive match on name or id."""
        needle = (term or "").lower()
        return [
            entity for entity in self.all()
            if needle in entity.name.lower() or needle in entity.entity_id.lower()
        ]

    def __contains__(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._entities

    def __len__(self) -> int:
        with self._lock:
            return len(self._entities)

def default_directory(roster_path: Optional[str] = None) -> Directory:
    """Directory from the roster file when it exists, else the sample class."""
    if roster_path and Path(roster_path).exists():
        return Directory.from_roster(roster_path)
    if roster_path:
        logger.warning(f"Roster file not found: {roster_path}, using sample students")
    return Directory(SAMPLE_STUDENTS)
