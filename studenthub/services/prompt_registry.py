"""Prompt templates for StudentHub AI features."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List


PROMPT_TUTOR_CHAT = """You are a helpful, friendly study tutor called "Study Buddy" for the StudentHub platform.

Role & Restrictions:
1. STRICTLY limited to academic topics, study advice, and helping users navigate this StudentHub website.
2. Refuse to answer inappropriate, NSFW, political, or non-educational off-topic questions.
3. If asked about website features, explain them: Dashboard, Notes (AI-powered), Tasks, Pomodoro, Flashcards, Grades (CGPA), Resources, and Budget.

Guidelines:
- Be encouraging and supportive
- Explain concepts in simple, easy-to-understand terms
- Use examples when helpful
- Keep responses concise but thorough
- If you don't know something, be honest about it
- Focus on education and learning

Conversation so far:
{conversation}

Provide a helpful response as the tutor. Be conversational and friendly."""

PROMPT_EXPLAIN = """You are a helpful tutor. A student has highlighted the following text and wants you to explain it in simple terms.

Text to explain:
"{text}"

Provide a clear, simple explanation that:
1. Breaks down complex concepts into easy-to-understand parts
2. Uses everyday analogies when helpful
3. Is concise but thorough
4. Addresses any technical terms

Keep your explanation focused and educational."""

PROMPT_QUIZ = """Based on the following study notes, generate 4 multiple-choice quiz questions to help the student test their understanding.

Study Notes:
{content}

Generate exactly 4 questions. Each question should:
1. Test understanding of key concepts from the notes
2. Have 4 answer options
3. Have exactly one correct answer
4. Include a brief explanation of why the correct answer is right

Return ONLY a valid JSON array with this exact structure (no markdown, no code blocks):
[
  {{
    "question": "The question text here",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correct_answer": 0,
    "explanation": "Brief explanation of why this is correct"
  }}
]

Where correct_answer is the 0-based index of the correct option."""

PROMPT_TASK_BREAKDOWN = """A student has a goal or large task they want to accomplish:
"{task}"

Break this down into 4-6 smaller, actionable subtasks that can be completed individually. Each subtask should be:
1. Specific and actionable
2. Reasonable to complete in one sitting
3. Ordered logically (what to do first, second, etc.)

Return ONLY a valid JSON object with this exact structure (no markdown, no code blocks):
{{
  "subtasks": [
    {{ "title": "First subtask description" }},
    {{ "title": "Second subtask description" }}
  ]
}}

Keep subtask titles concise but clear."""

PROMPT_MOTIVATION = """Generate a short, inspiring motivational quote for a student. The quote should be:
- Encouraging and uplifting
- Related to learning, studying, growth, or academic success
- Original or a famous quote with attribution
- Maximum 2 sentences

Return ONLY the quote text and attribution (if any), nothing else. Example format:
"The beautiful thing about learning is that no one can take it away from you." - B.B. King"""

PROMPT_EXTRACT_GRADES = """Analyze this image of a grade report, transcript, or result slip. Extract ALL courses/subjects with their grades, credits, AND semester.

IMPORTANT - SEMESTER MAPPING:
- If the image shows "Exam Month" (e.g., Jan-2024, Apr-2024, Aug-2024), map them to semesters CHRONOLOGICALLY:
  - Sort all unique exam months by date
  - The EARLIEST exam month = "Semester 1"
  - The SECOND earliest = "Semester 2", and so on
- If explicit semester info exists (e.g., "Fall 2024", "Winter 2025"), keep as-is

Grade points: O/S = 10, A = 9, B = 8, C = 7, D = 6, E = 5, F = 0

Return JSON: {{ "courses": [{{ "name": "string (course title)", "grade": "string (S/A/B/C/D/E/F/O)", "credits": number, "semester": "string (e.g. Semester 1)" }}] }}

IMPORTANT: Return ONLY valid JSON. No markdown formatting."""

PROMPT_EXTRACT_FLASHCARDS = """Analyze this study material (notes, textbook, diagram). Create a set of flashcards (Question/Answer) covering the key concepts.

Return JSON: {{ "deck_name": "string (suggested title)", "flashcards": [{{ "front": "string", "back": "string" }}] }}

IMPORTANT: Return ONLY valid JSON. No markdown formatting."""

PROMPT_EXTRACT_TIMETABLE = """Analyze this timetable/schedule image. It is a university grid. IMPORTANT: Only extract cells that contain actual COURSE CODES (e.g., "CSE3009", "MAT1001") or Subject Names. IGNORE cells that only contain Slot IDs like "A11", "B11", "C1", "D12". If a cell has a slot ID but NO course code, it is free. Ignore "Lunch".

Return JSON: {{ "classes": [{{ "day": "string (Full day name e.g. Monday)", "time": "string (Start - End e.g. 08:00 AM - 09:30 AM)", "subject": "string (Course Code + Name)", "location": "string (Room No)" }}] }}

IMPORTANT: Return ONLY valid JSON. No markdown formatting."""

PROMPT_EXTRACT_EXPENSES = """Analyze this receipt or bill. Extract the items purchased and total.

Return JSON: {{ "items": [{{ "description": "string", "amount": number, "category": "string (food, transport, etc)" }}], "total": number }}

IMPORTANT: Return ONLY valid JSON. No markdown formatting."""

PROMPT_EXTRACT_CUSTOM = """{instructions}

Return structured JSON data.

IMPORTANT: Return ONLY valid JSON. No markdown formatting."""

PROMPT_PARSE_EXPENSE = """Parse this bank SMS, UPI notification, or email about a transaction and extract expense data.

Text to parse:
"{text}"

Extract:
1. amount: The transaction amount (number only, no currency symbols)
2. description: Merchant name or transaction description
3. category: One of: food, transport, entertainment, shopping, education, other
4. date: Transaction date if mentioned (YYYY-MM-DD format), or null

Rules:
- For Indian banks: Look for "debited", "spent", "paid", "Rs.", "INR"
- For UPI: Extract merchant from "to" or "VPA" or "UPI-" prefix
- Category hints: Swiggy/Zomato=food, Uber/Ola/Metro=transport, Amazon/Flipkart=shopping
- If amount not found, return null

Return ONLY valid JSON:
{{"amount": number|null, "description": string, "category": string, "date": string|null}}"""

_CITATION_OUTPUT = """Return ONLY valid JSON:
{{
  "title": "{title_hint}",
  "citation_apa": "Full APA 7th edition citation",
  "citation_mla": "Full MLA 9th edition citation",
  "citation_chicago": "Full Chicago 17th edition citation"
}}"""

PROMPT_CITATION_URL = """Generate academic citations for this web page URL: {url}

Assume it's a web article. Generate proper citations in three formats.
Use today's date for the access date: {access_date}.

""" + _CITATION_OUTPUT

PROMPT_CITATION_BOOK = """Generate academic citations for this book:
- Title: {title}
- Author(s): {author}
- Publisher: {publisher}
- Year: {year}
- Edition: {edition}

""" + _CITATION_OUTPUT

PROMPT_CITATION_ARTICLE = """Generate academic citations for this journal article:
- Title: {title}
- Author(s): {author}
- Journal: {journal}
- Year: {year}
- Volume: {volume}
- Pages: {pages}

""" + _CITATION_OUTPUT

PROMPT_EXAM_PREP = """You are an expert exam-prep assistant.

Generate content for:
- Subject: {subject_name}
- Module: {module_name} (Module {module_number})
- Exam type: {exam_type}

Guidance: {exam_guidance}{global_context}

Return ONLY valid JSON with this exact schema:
{{
    "questions": [
        {{"question": "string", "answer": "string", "is_most_likely": boolean, "visual_search_query": "string (optional)"}}
    ],
    "flashcards": [
        {{"front": "string", "back": "string"}}
    ],
    "summary": "string"
}}

Rules:
- Create as many questions as needed to cover the module, but cap at {max_questions} total.
- Mark EXACTLY {most_likely_count} questions as is_most_likely=true.
- All other questions must have is_most_likely=false.
- Each question should be worth ~{marks_per_question} marks.
- Create AT LEAST 10 flashcards (aim for {flashcards_per_module}). Focus on definitions and key terms.
- Make flashcards specific to THIS module only.
- For the "summary" field, generate an "Ultra-Concise Quick Recap": MAXIMUM 150 WORDS, bullet points and tables only, high-yield comparisons, formulas or tricks. NO long paragraphs.
- Keep answers clear, structured, and exam-ready.{priority_rule}
- If provided with PDF images, pay special attention to any HIGHLIGHTED TEXT or red-circled items, as these are strict syllabus priority areas.
- If a question would benefit from a visual diagram, provide a specific Google Image search query in "visual_search_query". Otherwise leave it null.
- Return pure JSON."""

PROMPT_EXAM_PREP_NO_FILES = """WARNING: NO STUDY FILES WERE UPLOADED FOR THIS MODULE.
YOU MUST GENERATE CONTENT SOLELY BASED ON YOUR INTERNAL KNOWLEDGE.

Context:
- Subject: {subject_name}
- Module Topic: "{module_name}"
- Exam Type: {exam_type}

INSTRUCTIONS:
- You represent an expert professor in {subject_name}.
- Create questions, flashcards, and a summary that effectively cover the standard curriculum for the topic "{module_name}".
- Ensure the questions range from fundamental concepts to advanced applications typical for this topic.
- Use the "Important Questions" context provided above if relevant."""

PROMPT_EXAM_PREP_RETRY = """IMPORTANT: Your previous output did not follow the rules. Regenerate JSON with up to {max_questions} total questions, EXACTLY {expected_most_likely} marked is_most_likely=true, and EXACTLY {expected_flashcards} flashcards. Summary must be point-wise with each line starting "- ". Output ONLY JSON."""

PROMPT_SYLLABUS_ANALYSIS = """Analyze this syllabus document.
Identify and EXTRACT any text that is visually HIGHLIGHTED (yellow/marker), CIRCLED (red pen), or explicitly marked as "Important".

If NO text is clearly highlighted/marked, then summarize the top 3-5 high-level core topics listed in the document.

Output Format:
- Return ONLY the extracted text/topics.
- Use bullet points.
- Be specific."""

PROMPT_SHRINK_SUMMARY = """You are an expert study assistant.

Refine the following study notes into a "Micro-Summary":
- Reduce length by 50%.
- Keep ONLY the absolute most critical keywords, formulas, and mnemonics.
- Use ONLY bullet points.
- Max 10 lines.

Original Notes:
{current_summary}"""

PROMPT_JSON_FIX = """The following text was supposed to be valid JSON but could not be parsed.
Return the SAME data as strictly valid JSON with the same structure and field names.
Do not add commentary, markdown, or code fences. Output ONLY the JSON.

Malformed JSON:
{malformed_json}"""


@dataclass(frozen=True)
class PromptRecord:
    prompt_id: str
    name: str
    template: str


PROMPT_RECORDS: List[PromptRecord] = [
    PromptRecord("tutor_chat", "Study Buddy chat", PROMPT_TUTOR_CHAT),
    PromptRecord("explain", "Explain highlighted text", PROMPT_EXPLAIN),
    PromptRecord("quiz", "Quiz generation", PROMPT_QUIZ),
    PromptRecord("task_breakdown", "Task breakdown", PROMPT_TASK_BREAKDOWN),
    PromptRecord("motivation", "Daily motivation", PROMPT_MOTIVATION),
    PromptRecord("extract_grades", "Image extraction: grades", PROMPT_EXTRACT_GRADES),
    PromptRecord("extract_flashcards", "Image extraction: flashcards", PROMPT_EXTRACT_FLASHCARDS),
    PromptRecord("extract_timetable", "Image extraction: timetable", PROMPT_EXTRACT_TIMETABLE),
    PromptRecord("extract_expenses", "Image extraction: expenses", PROMPT_EXTRACT_EXPENSES),
    PromptRecord("extract_custom", "Image extraction: custom", PROMPT_EXTRACT_CUSTOM),
    PromptRecord("parse_expense", "Expense text parsing", PROMPT_PARSE_EXPENSE),
    PromptRecord("citation_url", "Citation: web page", PROMPT_CITATION_URL),
    PromptRecord("citation_book", "Citation: book", PROMPT_CITATION_BOOK),
    PromptRecord("citation_article", "Citation: journal article", PROMPT_CITATION_ARTICLE),
    PromptRecord("exam_prep", "Exam prep module generation", PROMPT_EXAM_PREP),
    PromptRecord("exam_prep_no_files", "Exam prep without study files", PROMPT_EXAM_PREP_NO_FILES),
    PromptRecord("exam_prep_retry", "Exam prep corrective suffix", PROMPT_EXAM_PREP_RETRY),
    PromptRecord("syllabus_analysis", "Syllabus highlight analysis", PROMPT_SYLLABUS_ANALYSIS),
    PromptRecord("shrink_summary", "Micro-summary", PROMPT_SHRINK_SUMMARY),
    PromptRecord("json_fix", "JSON repair re-prompt", PROMPT_JSON_FIX),
]


def get_prompt_template(prompt_id: str) -> str:
    safe_id = str(prompt_id or "").strip()
    for record in PROMPT_RECORDS:
        if record.prompt_id == safe_id:
            return record.template
    raise KeyError(f"Unknown prompt id: {safe_id}")


def render(prompt_id: str, **values: object) -> str:
    return get_prompt_template(prompt_id).format(**values)
