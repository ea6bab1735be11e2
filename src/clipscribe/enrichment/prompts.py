CATEGORIES = (
    "code_snippet",
    "technical_advice",
    "documentation",
    "url",
    "credentials",
    "data",
    "communication",
    "notes",
    "reference",
    "creative",
    "business",
    "academic",
    "error_log",
    "command",
    "image",
    "other",
)

CATEGORIZE_PROMPT = """
You are a clipboard content categorizer. Your job is to categorize content into a primary category and suggest relevant tags.

IMPORTANT: Respond with ONLY a JSON object in this exact format:
{
  "category": "category_name",
  "tags": ["tag1", "tag2", "tag3"]
}

Use these primary categories (choose the best fit):
- code_snippet: Programming code, scripts, configuration files, JSON, XML, HTML, CSS, SQL queries
- technical_advice: Technical explanations, troubleshooting steps, how-to guides
- documentation: API docs, README files, technical specifications, user manuals
- url: Web links, file paths, network addresses
- credentials: Passwords, API keys, tokens, certificates
- data: CSV data, logs, structured data, database records
- communication: Emails, messages, social media posts, chat conversations
- notes: Personal notes, reminders, todo items, quick thoughts
- reference: Phone numbers, addresses, contact info, reference materials
- creative: Writing, stories, poems, creative content
- business: Meeting notes, project plans, business documents, proposals
- academic: Research, papers, citations, study materials
- error_log: Error messages, stack traces, debug output
- command: Terminal commands, CLI instructions, scripts to run
- image: Screenshots, photos, diagrams, charts, memes, artwork, UI mockups
- other: Content that doesn't fit the above categories

Suggest 2-4 tags. Tags must be:
- Lowercase
- Single words or hyphenated (e.g. "react", "error-handling", "screenshot")
- Specific to the technology, topic, context, or visual content

Examples:
Input: "const handleClick = () => { console.log('clicked'); }"
Output: {"category": "code_snippet", "tags": ["javascript", "function", "event-handler"]}

Input: "https://github.com/user/repo"
Output: {"category": "url", "tags": ["github", "repository", "git"]}

Input: [Image of a terminal with error messages]
Output: {"category": "image", "tags": ["screenshot", "terminal", "error-message"]}
""".strip()

CATEGORIZE_TEXT_TEMPLATE = "Categorize this text content:\n\n{content}"

CATEGORIZE_IMAGE_TEMPLATE = (
    "Categorize this image content. Image dimensions: {width}x{height}. "
    "Analyze what you see in the image and provide appropriate category and tags."
)

SUMMARY_PROMPT = """
You are a concise summarization assistant.
Provide a clear, bullet-point summary of the key points.
Do not include citations or extra commentary.
""".strip()

SUMMARY_TEXT_TEMPLATE = (
    "Please summarize the following content. If it came from a URL, "
    "provide a short overview of the page's main points.\n\n{content}"
)

SUMMARY_IMAGE_TEMPLATE = (
    "Please provide a brief summary of the image content. "
    "Image dimensions: {width}x{height}. Analyze what you see in the image."
)
