"""Store assistant backed by Groq's OpenAI-compatible chat completions API."""
import logging

import requests
from flask import current_app

import storage
from errors import UpstreamError

logger = logging.getLogger(__name__)

FALLBACK_REPLY = ("I'm experiencing some technical difficulties. "
                  "Please try again later or contact our support team directly!")
REPHRASE_REPLY = "I'm having trouble processing that right now. Could you please rephrase your question?"


def build_system_prompt(products, videos):
    """Describe the live catalogue so answers quote real codes and prices."""
    product_lines = [
        f"- {p.product_id}: {p.name} | category {p.category} | price {p.currency} {p.price:.2f} | "
        f"{p.description or 'no description'}"
        for p in products
    ]
    by_category = {}
    for p in products:
        by_category.setdefault(p.category, []).append(p.product_id)
    category_lines = [f"- {category}: {', '.join(codes)}" for category, codes in sorted(by_category.items())]
    video_lines = [f"- {v.title} | category {v.category} | {v.youtube_url}" for v in videos]

    return "\n".join([
        "You are the shopping assistant of Mohit Corporation, a store for gaming panels, bots, "
        "websites and YouTube resources.",
        "Answer in the language the customer writes in, Hindi, English or Hinglish.",
        "When recommending a product always give its product code, name and price, and tell the "
        "customer it can be found on the Products page under its category.",
        "Only mention products and videos listed below. If nothing matches, suggest the closest "
        "category. Wrap any code you write in fenced markdown blocks.",
        "",
        "Products:",
        *(product_lines or ["- none available right now"]),
        "",
        "Categories:",
        *(category_lines or ["- none"]),
        "",
        "YouTube videos:",
        *(video_lines or ["- none"]),
    ])


def ask(message):
    """Return the assistant's reply to ``message``.

    Raises UpstreamError when no answer can be obtained; callers turn that
    into the fallback reply.
    """
    config = current_app.config
    api_key = config.get('GROQ_API_KEY')
    if not api_key:
        raise UpstreamError('GROQ_API_KEY is not configured')

    prompt = build_system_prompt(storage.products.list(), storage.youtube_resources.list())
    payload = {
        'model': config['GROQ_MODEL'],
        'messages': [
            {'role': 'system', 'content': prompt},
            {'role': 'user', 'content': message},
        ],
        'temperature': 0.5,
        'max_tokens': 1000,
    }
    try:
        response = requests.post(
            config['GROQ_API_URL'],
            json=payload,
            headers={'Authorization': f'Bearer {api_key}'},
            timeout=config['GROQ_TIMEOUT'],
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        raise UpstreamError(f'Groq request failed: {exc}') from exc

    try:
        content = data['choices'][0]['message']['content']
    except (KeyError, IndexError, TypeError) as exc:
        raise UpstreamError('Malformed completion payload') from exc

    content = (content or '').strip()
    if not content:
        logger.info("Empty completion, asking the customer to rephrase")
        return REPHRASE_REPLY
    return content
