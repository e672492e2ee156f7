"""
File analysis constants: stream block ids, user-facing messages and prompts.
"""

import re
import textwrap

# Stream block ids
FILE_ANALYSIS_BLOCK_ID = "file-analysis-text"
FILE_RECEIVED_BLOCK_ID = "file-received-text"

# "analy" anywhere (analyze, analysis, ...), the word "ocr" or a bare "3" (menu option)
ANALYSIS_INTENT_PATTERN = re.compile(r"analy|\bocr\b|\b3\b", re.IGNORECASE)

PAGE_HEADER_TEMPLATE = "--- PAGE {page_number} ---\n{text}"

CAPABILITY_MENU_TEMPLATE = (
    'Received "{file_name}" ({media_type}). I can (1) summarize text, '
    "(2) run OCR, (3) analyze images, or (4) extract tables. "
    "What would you like me to do with this file?"
)

# Progress notices, written before the blocking call they precede
SCANNED_PDF_NOTICE = (
    "PDF appears to be scanned. Running per-page OCR (this may take a while)...\n"
)
ANALYZING_IMAGE_NOTICE = 'Analyzing image "{file_name}"...\n'
UNKNOWN_TYPE_NOTICE = "Unknown file type ({media_type}). Attempting to extract text...\n"

# Result prefixes
DIRECT_TEXT_RESULT_PREFIX = "Extracted text from PDF. Summary and structured output:\n\n"
OCR_RESULT_PREFIX = "OCR complete. Combined summary:\n\n"
IMAGE_RESULT_PREFIX = "Analysis result:\n\n"
UNKNOWN_TEXT_RESULT_PREFIX = "Extracted text summary:\n\n"
NO_MEANINGFUL_TEXT_MESSAGE = "Couldn't extract meaningful text from this file."
ANALYSIS_ERROR_TEMPLATE = "Error during analysis: {message}"

VISION_PROMPT = (
    'You will be given an image. 1) Extract all visible text (OCR) under key "ocr_text". '
    '2) Detect and extract any tables (under "tables" as array of objects). '
    '3) Provide a concise two-line summary under "summary". '
    '4) Provide a "confidence" field (low/medium/high) if possible. '
    "Return valid JSON only."
)

CHUNK_SUMMARY_PROMPT_TEMPLATE = textwrap.dedent("""\
    Summarize the following passage and extract key items (title, headings, important bullet points). \
    Return JSON with keys: "title", "bullets" (array), "excerpt". \
    Passage {index}/{total}:

    {chunk}""")

COMBINE_SUMMARIES_PROMPT_TEMPLATE = (
    "You are given {count} chunk summaries (possibly as JSON or text). "
    "Combine them into a single structured JSON with keys: "
    "overall_summary (3-5 bullet points), important_entities (list), "
    "recommendations (if any). Ensure validity JSON only."
)
