"""Team score sheet PDF generator.

One page per team (meet + level + discipline) with:
- Small-caps meet title and date/location line
- Red filled oval with the level and discipline
- Small-caps event column headers
- One row per gymnast, counting scores in red bold
- Red divider and the event and team totals
- Dynamic font sizing (11pt down to 7pt) so a team fits on one page
"""

import fitz  # PyMuPDF

from .db import get_connection, get_gymnasts, get_meets, get_scores
from .seasons import format_date, format_score, from_millis
from .team_scores import (calculate_team_score, events_for_discipline,
                          filter_team_scores, format_team_score,
                          get_event_display_name, is_counting_score,
                          sort_level_discipline_combos)

# --- Page layout constants (letter: 612 x 792 pt) ---
PAGE_W = 612
PAGE_H = 792
LEFT_MARGIN = 48
RIGHT_MARGIN = PAGE_W - 48
NAME_COL_RIGHT = 210

# Colors
RED = (0.8, 0, 0)
WHITE = (1, 1, 1)
BLACK = (0, 0, 0)
GRAY = (0.4, 0.4, 0.4)

# Layout Y positions
TITLE_Y = 45
SUBTITLE_Y = 68
OVAL_CENTER_Y = 98
HEADERS_Y = 135
ROWS_START_Y = 158
FOOTER_Y = PAGE_H - 24
ROWS_BOTTOM_Y = PAGE_H - 110

# Font sizes
TITLE_LARGE = 18
TITLE_SMALL = 14
HEADER_LARGE = 11
HEADER_SMALL = 9
DEFAULT_ROW_SIZE = 11
MIN_ROW_SIZE = 7
OVAL_LABEL_SIZE = 12
DIVIDER_SIZE = 10
TOTAL_SIZE = 20
FOOTER_SIZE = 8

LINE_HEIGHT_RATIO = 1.6

# Rows that fit between ROWS_START_Y and ROWS_BOTTOM_Y at the minimum size
MAX_ROWS_PER_PAGE = int((ROWS_BOTTOM_Y - ROWS_START_Y) // (MIN_ROW_SIZE * LINE_HEIGHT_RATIO))

FONT_REGULAR = 'Times-Roman'
FONT_BOLD = 'Times-Bold'

DISCIPLINE_LABELS = {'Womens': "WOMEN'S", 'Mens': "MEN'S"}


def generate_team_sheet_pdf(db_path: str, output_path: str, meet_id: str | None = None,
                            top_count: int = 3) -> int:
    """Generate a team score sheet PDF.

    Args:
        db_path: Path to SQLite database.
        output_path: Where to save the PDF.
        meet_id: Only this meet's teams; all meets when None.
        top_count: Scores counted per event.

    Returns:
        Number of teams written. A team with more rows than fit on one
        page continues on further pages, with the totals on its last page.
        A document with no teams still gets one blank page so the file is
        a valid PDF.
    """
    teams = _get_teams(db_path, meet_id)

    doc = fitz.open()
    for meet, level, discipline, team in teams:
        chunks = _split_rows(team)
        for i, rows in enumerate(chunks):
            page = doc.new_page(width=PAGE_W, height=PAGE_H)
            _draw_team_page(page, meet, level, discipline, team, rows, top_count,
                            last=(i == len(chunks) - 1))

    if not teams:
        doc.new_page(width=PAGE_W, height=PAGE_H)

    doc.save(output_path)
    doc.close()
    return len(teams)


# --- Data query ---

def _get_teams(db_path: str, meet_id: str | None):
    """(meet, level, discipline, [(gymnast, score)]) per team, newest meet first."""
    conn = get_connection(db_path)
    gymnasts = get_gymnasts(conn, include_hidden=True)
    meets = get_meets(conn)
    scores = get_scores(conn)
    conn.close()

    gymnasts_by_id = {g.id: g for g in gymnasts}
    teams = []
    for meet in meets:
        if meet_id is not None and meet.id != meet_id:
            continue
        combos = {}
        for s in scores:
            gymnast = gymnasts_by_id.get(s.gymnast_id)
            if s.meet_id == meet.id and s.level and gymnast is not None:
                combos[(s.level, gymnast.discipline)] = {
                    'level': s.level, 'discipline': gymnast.discipline}
        for combo in sort_level_discipline_combos(list(combos.values())):
            team = filter_team_scores(scores, gymnasts, meet.id,
                                      combo['level'], combo['discipline'])
            teams.append((meet, combo['level'], combo['discipline'], team))
    return teams


# --- Page drawing ---

def _split_rows(team):
    """Break a team into page-sized runs of rows."""
    if not team:
        return [team]
    return [team[i:i + MAX_ROWS_PER_PAGE] for i in range(0, len(team), MAX_ROWS_PER_PAGE)]


def _draw_team_page(page, meet, level, discipline, team, rows, top_count, last=True):
    events = events_for_discipline(discipline)
    result = calculate_team_score([s for _, s in team], discipline,
                                  [g for g, _ in team], top_count)
    col_centers = _column_centers(len(events) + 1)

    _draw_small_caps(page, PAGE_W / 2, TITLE_Y, meet.name, TITLE_LARGE, TITLE_SMALL)

    subtitle = format_date(from_millis(meet.date))
    if meet.location:
        subtitle = f'{subtitle}  -  {meet.location}'
    _draw_centered(page, PAGE_W / 2, SUBTITLE_Y, subtitle, FONT_REGULAR, 11, GRAY)

    label = f'{level.upper()} {DISCIPLINE_LABELS.get(discipline, discipline.upper())}'
    _draw_oval(page, label, OVAL_CENTER_Y)

    for i, event in enumerate(events):
        _draw_small_caps(page, col_centers[i], HEADERS_Y,
                         get_event_display_name(event, abbreviated=False).upper(),
                         HEADER_LARGE, HEADER_SMALL, max_width=_column_width(col_centers))
    _draw_small_caps(page, col_centers[-1], HEADERS_Y, 'ALL AROUND',
                     HEADER_LARGE, HEADER_SMALL, max_width=_column_width(col_centers))

    font_size = _fit_font_size(len(team))
    line_height = font_size * LINE_HEIGHT_RATIO

    y = ROWS_START_Y
    for gymnast, score in rows:
        page.insert_text(fitz.Point(LEFT_MARGIN, y), _truncate(gymnast.name, font_size),
                         fontname=FONT_REGULAR, fontsize=font_size, color=BLACK)
        for i, event in enumerate(events):
            value = score.scores.get(event)
            if value is None:
                _draw_centered(page, col_centers[i], y, '-', FONT_REGULAR, font_size, GRAY)
            elif is_counting_score(gymnast.id, event, result.counting_scores):
                _draw_centered(page, col_centers[i], y, format_score(value),
                               FONT_BOLD, font_size, RED)
            else:
                _draw_centered(page, col_centers[i], y, format_score(value),
                               FONT_REGULAR, font_size, BLACK)
        all_around = score.scores.get('allAround') or 0
        _draw_centered(page, col_centers[-1], y, format_score(all_around),
                       FONT_REGULAR, font_size, BLACK)
        y += line_height

    if not last:
        _draw_centered(page, PAGE_W / 2, ROWS_BOTTOM_Y + 24, 'Continued on next page',
                       FONT_REGULAR, DEFAULT_ROW_SIZE, GRAY)
        return

    y += 12
    _draw_divider(page, y, f'TOP {top_count} COUNT')
    y += DIVIDER_SIZE * 2.2

    page.insert_text(fitz.Point(LEFT_MARGIN, y), 'Event totals',
                     fontname=FONT_BOLD, fontsize=DEFAULT_ROW_SIZE, color=BLACK)
    for i, event in enumerate(events):
        _draw_centered(page, col_centers[i], y, format_team_score(result.team_scores[event]),
                       FONT_BOLD, DEFAULT_ROW_SIZE, BLACK)

    y += TOTAL_SIZE * 2
    _draw_centered(page, PAGE_W / 2, y,
                   f'TEAM SCORE  {format_team_score(result.total_score)}',
                   FONT_BOLD, TOTAL_SIZE, RED)

    _draw_centered(page, PAGE_W / 2, FOOTER_Y,
                   f'Scores in red count toward the team total (top {top_count} per event)',
                   FONT_REGULAR, FOOTER_SIZE, GRAY)


# --- Layout helpers ---

def _column_centers(count):
    """Evenly spaced column centers between the name column and the margin."""
    width = (RIGHT_MARGIN - NAME_COL_RIGHT) / count
    return [NAME_COL_RIGHT + width * (i + 0.5) for i in range(count)]


def _column_width(col_centers):
    if len(col_centers) < 2:
        return RIGHT_MARGIN - NAME_COL_RIGHT
    return col_centers[1] - col_centers[0] - 4


def _fit_font_size(row_count):
    """Largest row font size (11pt-7pt, 0.5 steps) that fits all rows."""
    available = ROWS_BOTTOM_Y - ROWS_START_Y
    for size_2x in range(DEFAULT_ROW_SIZE * 2, MIN_ROW_SIZE * 2 - 1, -1):
        size = size_2x / 2
        if row_count * size * LINE_HEIGHT_RATIO <= available:
            return size
    return MIN_ROW_SIZE


def _truncate(text, font_size):
    """Shorten a name with an ellipsis so it stays in the name column."""
    max_w = NAME_COL_RIGHT - LEFT_MARGIN - 6
    if fitz.get_text_length(text, fontname=FONT_REGULAR, fontsize=font_size) <= max_w:
        return text
    while text and fitz.get_text_length(text + '...', fontname=FONT_REGULAR,
                                        fontsize=font_size) > max_w:
        text = text[:-1]
    return text + '...'


# --- Drawing functions ---

def _draw_centered(page, center_x, y, text, fontname, fontsize, color):
    tw = fitz.get_text_length(text, fontname=fontname, fontsize=fontsize)
    page.insert_text(fitz.Point(center_x - tw / 2, y), text,
                     fontname=fontname, fontsize=fontsize, color=color)


def _draw_small_caps(page, center_x, y, text, large_size, small_size, max_width=None):
    """Draw text in small caps, centered horizontally.

    First letter of each word at large_size, rest at small_size. When
    ``max_width`` is given both sizes shrink together until the text fits.
    """
    if max_width is not None:
        while (large_size > 6 and
               _measure_small_caps_width(text, large_size, small_size) > max_width):
            large_size -= 0.5
            small_size -= 0.5

    total_width = _measure_small_caps_width(text, large_size, small_size)
    x = center_x - total_width / 2

    words = text.split()
    for wi, word in enumerate(words):
        if wi > 0:
            x += fitz.get_text_length(' ', fontname=FONT_BOLD, fontsize=large_size)

        for ci, ch in enumerate(word):
            ch_upper = ch.upper()
            fs = large_size if ci == 0 else small_size
            page.insert_text(fitz.Point(x, y), ch_upper,
                             fontname=FONT_BOLD, fontsize=fs, color=BLACK)
            x += fitz.get_text_length(ch_upper, fontname=FONT_BOLD, fontsize=fs)


def _measure_small_caps_width(text, large_size, small_size):
    total = 0
    words = text.split()
    for wi, word in enumerate(words):
        if wi > 0:
            total += fitz.get_text_length(' ', fontname=FONT_BOLD, fontsize=large_size)
        for ci, ch in enumerate(word):
            fs = large_size if ci == 0 else small_size
            total += fitz.get_text_length(ch.upper(), fontname=FONT_BOLD, fontsize=fs)
    return total


def _draw_oval(page, label, y_center):
    """Draw a red filled oval with white text label."""
    tw = fitz.get_text_length(label, fontname=FONT_BOLD, fontsize=OVAL_LABEL_SIZE)
    oval_w = tw + 40
    oval_h = 22

    rect = fitz.Rect(PAGE_W / 2 - oval_w / 2, y_center - oval_h / 2,
                     PAGE_W / 2 + oval_w / 2, y_center + oval_h / 2)
    page.draw_oval(rect, color=RED, fill=RED)

    # y positions are baselines
    text_y = y_center + OVAL_LABEL_SIZE * 0.35
    page.insert_text(fitz.Point(PAGE_W / 2 - tw / 2, text_y), label,
                     fontname=FONT_BOLD, fontsize=OVAL_LABEL_SIZE, color=WHITE)


def _draw_divider(page, y, text):
    """Draw red lines flanking letter-spaced text."""
    spaced = _space_text(text)
    tw = fitz.get_text_length(spaced, fontname=FONT_BOLD, fontsize=DIVIDER_SIZE)

    text_x = PAGE_W / 2 - tw / 2
    page.insert_text(fitz.Point(text_x, y), spaced,
                     fontname=FONT_BOLD, fontsize=DIVIDER_SIZE, color=RED)

    line_y = y - DIVIDER_SIZE * 0.35
    gap = 8
    page.draw_line(fitz.Point(LEFT_MARGIN, line_y), fitz.Point(text_x - gap, line_y),
                   color=RED, width=0.75)
    page.draw_line(fitz.Point(text_x + tw + gap, line_y), fitz.Point(RIGHT_MARGIN, line_y),
                   color=RED, width=0.75)


def _space_text(text):
    """Add letter spacing: 'TOP 3' -> 'T O P  3'."""
    return '  '.join(' '.join(word) for word in text.split())
