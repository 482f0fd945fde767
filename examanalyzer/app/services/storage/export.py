import io
from datetime import date
from typing import List, Tuple

import pandas as pd

EXPORT_FORMATS = ("json", "csv", "xlsx")

EXPORT_COLUMNS = [
    "paper_title",
    "exam_type",
    "year",
    "question_number",
    "question_text",
    "topic",
    "difficulty",
    "importance_explanation",
    "is_analyzed",
]

MEDIA_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def questions_frame(rows: List[dict]) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    return df.astype(object).where(df.notna(), None)


def export_questions(rows: List[dict], fmt: str = "csv", filename: str = None) -> Tuple[bytes, str, str]:
    """
    Render question rows as a downloadable file.
    Returns (content, media_type, filename).
    """
    fmt = (fmt or "csv").lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}. Valid options: {', '.join(EXPORT_FORMATS)}")

    df = questions_frame(rows)

    if filename:
        # Sanitize filename (remove any path characters)
        safe_name = "".join(c for c in filename if c.isalnum() or c in ("_", "-", " ")) or "questions"
    else:
        safe_name = f"questions_{date.today().strftime('%Y%m%d')}"

    if fmt == "json":
        content = df.to_json(orient="records", indent=2, force_ascii=False).encode("utf-8")
    elif fmt == "csv":
        content = df.to_csv(index=False).encode("utf-8")
    else:
        buffer = io.BytesIO()
        df.to_excel(buffer, index=False, sheet_name="Questions")
        content = buffer.getvalue()

    return content, MEDIA_TYPES[fmt], f"{safe_name}.{fmt}"
