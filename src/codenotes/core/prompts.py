"""Prompt templates for repository analysis."""

from __future__ import annotations

from codenotes.core.errors import AnalysisValidationError

REPO_URL_PLACEHOLDER = "{{REPO_URL}}"

DEFAULT_PROMPT_TEMPLATE = f"""You are an assistant that evaluates Symfony projects on GitHub for beginners.
For the following GitHub repository: {REPO_URL_PLACEHOLDER}

1. Check whether this repository is a Symfony project. Look for simple signs such as:
   - A composer.json file that requires "symfony/framework-bundle".
   - A typical folder layout: config/, src/, templates/, public/index.php or bin/console.
2. If it is NOT a Symfony project, say so clearly in the analysis and give a rating of -1.
3. If it IS a Symfony project:
   a. Describe the project simply (its purpose if identifiable, and the Symfony version if visible).
   b. Assess performance: Doctrine entities and relations in src/Entity/, basic caching,
      asset organisation (public/ or Webpack Encore), services in src/Service/ and config/services.yaml.
   c. Assess security: CSRF protection in forms, output escaping in Twig templates,
      secrets kept in .env, access control in config/packages/security.yaml.
   d. Check for DTOs (src/DTO/ or classes that structure exchanged data).
   e. Check for an API (api-platform, /api/ routes, dedicated controllers) and whether it
      follows simple good practices (JSON responses, proper HTTP status codes).
   f. Assess clean code: readable names, separation of responsibilities, no dead or duplicated code.
   g. Mention good practices observed and points to improve.
4. Give a combined rating for performance, security, API usage and clean code on a scale from 0 to 10:
   - 0: major problems (non-working code, obvious vulnerabilities, unreadable code).
   - 5: acceptable project with room for improvement.
   - 10: well structured, secure, clean API and code, respecting Symfony fundamentals.
5. If the repository is empty, lacks relevant code or cannot be evaluated clearly,
   give a rating of -1 and explain why in the analysis."""

JSON_RESPONSE_INSTRUCTION = """
Explain in the analysis why you chose the rating.
Reply ONLY with a valid JSON object containing the keys "analysis" (string) and "rating" (number). Example:
{
  "analysis": "This project uses Symfony 6.x for a small application with an API. Forms include CSRF tokens but the .env file is missing. Services live in src/Service/ and DTOs are used for the API. The code is readable but contains redundant functions.",
  "rating": 7
}"""


def build_prompt(repo_url: str, template: str | None = None) -> str:
    """Assemble the prompt sent to the model.

    ``template`` is a custom template; ``None`` selects the default one.
    Every placeholder occurrence is replaced by ``repo_url`` and the JSON
    response instruction is appended.
    """
    if not repo_url or not repo_url.strip():
        raise AnalysisValidationError("Please provide a repository URL to analyze.")
    if template is None:
        template = DEFAULT_PROMPT_TEMPLATE
    elif not template.strip():
        raise AnalysisValidationError("The custom prompt template cannot be empty.")
    elif REPO_URL_PLACEHOLDER not in template:
        raise AnalysisValidationError(
            f"The custom prompt template must contain the {REPO_URL_PLACEHOLDER} placeholder."
        )
    prompt = template.replace(REPO_URL_PLACEHOLDER, repo_url)
    return f"{prompt}\n{JSON_RESPONSE_INSTRUCTION}"
