"""
Guest list export (spreadsheet / CSV)
"""

import io
import pandas as pd
from sqlalchemy.orm import Session

from app.services.repositories import GuestRepo

class ExportService:
    """Service for exporting the guest list with check-in state"""

    COLUMNS = [
        'Name', 'Category', 'Family Size', 'Table', 'Dietary', 'Phone', 'Email',
        'Token', 'Checked In', 'Checked In At', 'Scan Count'
    ]

    MEDIA_TYPES = {
        'xlsx': "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        'csv': "text/csv",
    }

    @staticmethod
    def build_frame(db: Session, event_id: int) -> pd.DataFrame:
        rows = [
            {
                'Name': guest.name,
                'Category': guest.category,
                'Family Size': guest.family_size,
                'Table': guest.table_number or '',
                'Dietary': guest.dietary or '',
                'Phone': guest.phone or '',
                'Email': guest.email or '',
                'Token': guest.token,
                'Checked In': 'Yes' if guest.checked_in else 'No',
                'Checked In At': guest.checked_in_at.isoformat(sep=' ', timespec='seconds') if guest.checked_in_at else '',
                'Scan Count': guest.scan_count,
            }
            for guest in GuestRepo.list_for_event(db, event_id)
        ]
        return pd.DataFrame(rows, columns=ExportService.COLUMNS)

    @staticmethod
    def export_guests(db: Session, event_id: int, fmt: str = 'xlsx') -> bytes:
        """Export current guest data as ``xlsx`` or ``csv`` bytes"""
        if fmt not in ExportService.MEDIA_TYPES:
            raise ValueError(f"Unsupported export format: {fmt}")

        df = ExportService.build_frame(db, event_id)

        if fmt == 'csv':
            return df.to_csv(index=False).encode('utf-8')

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name='Guest List')
        return buffer.getvalue()
