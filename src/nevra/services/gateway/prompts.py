"""Prompt Builder
==============

System prompts for builder/tutor mode, the framework instructions that ask
for a multi-file manifest, and the planning instruction prompt.
"""

from typing import Optional

from nevra.constants import Framework, GenerationMode

BUILDER_PROMPT = """You are NEVRA BUILDER, an expert front-end engineer.
Turn the user's request into a complete, production-ready web application.

OUTPUT FORMAT:
- For a simple page return ONE self-contained HTML document (Tailwind via CDN,
  inline scripts), starting with <!DOCTYPE html>.
- For framework projects return ONLY a fenced ```json block:
  {"type": "multi-file", "framework": "react",
   "files": [{"path": "src/App.tsx", "content": "...", "type": "component"}],
   "entry": "src/App.tsx"}
  File "type" is one of component, page, style, config, other.
- Never ask for confirmation; always return code."""

TUTOR_PROMPT = """You are NEVRA TUTOR, a patient AI educator and mentor.
- Explain step by step, use analogies and Socratic questions.
- Use bold for key concepts, fenced code blocks for code, numbered steps for procedures.
- Do NOT generate full applications in tutor mode; keep to snippets and explanations.
- If images are provided, describe their key elements and use them to answer."""

FRAMEWORK_LABELS = {
    Framework.REACT: 'React',
    Framework.VITE: 'Vite/React',
    Framework.NEXTJS: 'Next.js',
}

FRAMEWORK_STRUCTURE = {
    Framework.REACT: 'package.json, tsconfig.json, index.html, src/main.tsx, src/App.tsx',
    Framework.VITE: 'package.json, tsconfig.json, vite.config.ts, index.html, src/main.tsx, src/App.tsx',
    Framework.NEXTJS: 'package.json, tsconfig.json, next.config.js, app/layout.tsx, app/page.tsx',
}

VISION_INSTRUCTIONS = """

VISION ANALYSIS MODE:
Images are attached. Describe what you see accurately (layout, colors, text,
UI elements). If an image shows a UI design, recreate it in code (builder mode)
or explain it step by step (tutor mode)."""

PLANNING_PROMPT = """You are an expert project planning assistant. Break the user's
request into an actionable task list with dependencies, priorities and time estimates.

User Request: "{prompt}"

Categories: setup, component, styling, logic, integration, testing, deployment, documentation.
Priorities: high (critical path), medium, low (polish).

Return ONLY JSON with this exact structure:
{{
  "tasks": [
    {{
      "id": "1",
      "title": "Verb + noun title",
      "description": "What to do and the acceptance criteria",
      "status": "pending",
      "dependencies": [],
      "estimatedTime": 15,
      "priority": "high",
      "category": "setup"
    }}
  ],
  "estimatedTotalTime": 15
}}

Rules: sequential string ids ("1", "2", ...); dependencies reference earlier ids only;
estimatedTime in whole minutes (5-60); estimatedTotalTime is the sum; 3-10 tasks."""


def is_framework_project(framework: Optional[Framework]) -> bool:
    return framework is not None and framework != Framework.HTML


def build_system_prompt(
    mode: GenerationMode,
    framework: Optional[Framework] = None,
    has_images: bool = False,
) -> str:
    """System prompt for a generation request."""
    prompt = BUILDER_PROMPT if mode == GenerationMode.BUILDER else TUTOR_PROMPT

    if mode == GenerationMode.BUILDER and is_framework_project(framework):
        label = FRAMEWORK_LABELS[framework]
        prompt += (
            f"\n\nCRITICAL FRAMEWORK REQUIREMENT:\n"
            f"Generate a {label} project in multi-file JSON format with framework \"{framework.value}\".\n"
            f"- DO NOT return single-file HTML\n"
            f"- Include at least: {FRAMEWORK_STRUCTURE[framework]}"
        )

    if has_images:
        prompt += VISION_INSTRUCTIONS
    return prompt


def build_user_prompt(prompt: str, mode: GenerationMode, framework: Optional[Framework] = None) -> str:
    """User prompt, with a multi-file reminder appended for framework projects."""
    if mode == GenerationMode.BUILDER and is_framework_project(framework):
        label = FRAMEWORK_LABELS[framework]
        return (
            f"{prompt}\n\nIMPORTANT: Generate as {label} project with multi-file structure. "
            f"Return JSON format with type \"multi-file\"."
        )
    return prompt


def build_planning_prompt(prompt: str) -> str:
    return PLANNING_PROMPT.format(prompt=prompt.replace('"', "'"))
