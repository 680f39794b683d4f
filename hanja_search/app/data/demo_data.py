"""Demo dictionary rows used to seed a fresh database."""

from __future__ import annotations

from typing import Iterator, Optional, Tuple

from hanja_search.core.models import CharacterRecord, Element

# (character, meaning, strokes, primary reading, alternatives, element,
#  usage frequency, name frequency, surname priority)
DemoRow = Tuple[str, str, int, str, Tuple[str, ...], Optional[Element], int, int, Optional[int]]

DEMO_HANJA_ROWS: Tuple[DemoRow, ...] = (
    ("金", "쇠", 8, "금", ("김",), Element.METAL, 950, 900, 1),
    ("李", "오얏", 7, "이", ("리",), Element.WOOD, 900, 880, 2),
    ("朴", "성", 6, "박", (), Element.WOOD, 800, 850, 3),
    ("崔", "높을", 11, "최", (), Element.EARTH, 500, 700, 4),
    ("鄭", "나라", 19, "정", (), Element.FIRE, 600, 720, 5),
    ("趙", "나라", 14, "조", (), Element.FIRE, 450, 640, 6),
    ("尹", "성", 4, "윤", (), Element.EARTH, 380, 610, 7),
    ("張", "베풀", 11, "장", (), Element.FIRE, 520, 600, 8),
    ("姜", "성", 9, "강", (), Element.WOOD, 340, 580, 9),
    ("林", "수풀", 8, "임", ("림",), Element.WOOD, 420, 480, 10),
    ("韓", "나라", 17, "한", (), Element.WATER, 610, 560, 11),
    ("吳", "성", 7, "오", (), Element.WATER, 300, 540, 12),
    ("申", "납", 5, "신", (), Element.METAL, 290, 520, 13),
    ("梁", "들보", 11, "양", ("량",), Element.WOOD, 260, 470, 14),
    ("宋", "송나라", 7, "송", (), Element.WOOD, 280, 460, 15),
    ("玄", "검을", 5, "현", (), Element.FIRE, 230, 420, 16),
    ("柳", "버들", 9, "류", ("유",), Element.WOOD, 400, 500, 17),
    ("劉", "죽일", 15, "류", ("유",), Element.METAL, 210, 300, 18),
    ("盧", "밥그릇", 16, "노", ("로",), Element.WATER, 190, 310, 19),
    ("賢", "어질", 15, "현", (), Element.WOOD, 300, 650, None),
    ("星", "별", 9, "성", (), Element.FIRE, 350, 400, None),
    ("現", "나타날", 11, "현", (), Element.METAL, 640, 380, None),
    ("鉉", "솥귀", 13, "현", (), Element.METAL, 90, 520, None),
    ("炫", "밝을", 9, "현", (), Element.FIRE, 80, 450, None),
    ("利", "이로울", 7, "리", ("이",), Element.METAL, 300, 200, None),
    ("理", "다스릴", 11, "리", ("이",), Element.FIRE, 350, 260, None),
    ("二", "두", 2, "이", (), Element.EARTH, 700, 50, None),
    ("伊", "저", 6, "이", (), Element.FIRE, 120, 90, None),
    ("錦", "비단", 16, "금", (), Element.METAL, 150, 300, None),
    ("今", "이제", 4, "금", (), Element.FIRE, 500, 40, None),
    ("琴", "거문고", 12, "금", (), Element.WOOD, 100, 220, None),
    ("龍", "용", 16, "룡", ("용",), Element.EARTH, 330, 560, None),
    ("容", "얼굴", 10, "용", (), Element.EARTH, 310, 330, None),
    ("千", "일천", 3, "천", (), Element.WATER, 600, 120, None),
    ("天", "하늘", 4, "천", (), Element.FIRE, 800, 430, None),
)


def demo_record_id(index: int) -> str:
    return f"hj{index:06d}"


def iter_demo_records() -> Iterator[CharacterRecord]:
    for index, row in enumerate(DEMO_HANJA_ROWS, start=1):
        (character, meaning, strokes, reading, alternatives, element,
         usage, name, priority) = row
        yield CharacterRecord(
            id=demo_record_id(index),
            character=character,
            meaning=meaning,
            strokes=strokes,
            korean_reading=reading,
            alternative_readings=alternatives,
            element=element,
            usage_frequency=usage,
            name_frequency=name,
            surname_priority=priority,
        )


__all__ = ["DEMO_HANJA_ROWS", "demo_record_id", "iter_demo_records"]
