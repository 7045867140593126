"""
Preservación de formato HTML para descripciones de producto

La transformación es idempotente: aplicarla sobre su propia salida
no cambia el resultado.
"""

import re

HTML_TAG_RE = re.compile(r'</?[a-zA-Z][^>]*>')
INTER_TAG_WHITESPACE_RE = re.compile(r'>\s+<')
BLOCK_CLOSE_RE = re.compile(
    r'(</(?:p|div|h[1-6]|ul|ol|li|blockquote|pre|table|thead|tbody|tr|section|article|figure)>)\s*',
    re.IGNORECASE,
)
BLOCK_OPEN_RE = re.compile(
    r'^<(?:p|div|h[1-6]|ul|ol|li|blockquote|pre|table|section|article|figure|hr)\b',
    re.IGNORECASE,
)
BLANK_LINE_RE = re.compile(r'\n\s*\n')


def _collapse_inter_tag(match) -> str:
    # Espacio con salto de línea entre etiquetas se elimina; el resto queda en un espacio
    return '><' if '\n' in match.group(0) else '> <'


def _format_html(text: str) -> str:
    text = INTER_TAG_WHITESPACE_RE.sub(_collapse_inter_tag, text).strip()

    if not BLOCK_OPEN_RE.match(text):
        text = f'<p>{text}</p>'

    # Envolver antes de insertar saltos tras cierres de bloque
    return BLOCK_CLOSE_RE.sub(lambda m: m.group(1) + '\n', text).strip()


def _format_plain_text(text: str) -> str:
    paragraphs = []
    for block in BLANK_LINE_RE.split(text):
        lines = [line.strip() for line in block.split('\n')]
        lines = [line for line in lines if line]
        if lines:
            paragraphs.append(f"<p>{'<br>'.join(lines)}</p>")
    return '\n'.join(paragraphs)


def preserve_html_formatting(value) -> str:
    """
    Normaliza un campo de texto libre a HTML estable

    - Con etiquetas: saltos de línea normalizados, espacios entre etiquetas
      colapsados, salto de línea tras cada cierre de bloque y envoltura en
      <p> si empieza con contenido en línea.
    - Texto plano: párrafos por línea en blanco, <br> por salto simple.
    """
    if not value:
        return ''

    text = str(value).replace('\r\n', '\n').replace('\r', '\n')
    if not text.strip():
        return ''

    if HTML_TAG_RE.search(text):
        return _format_html(text)
    return _format_plain_text(text)
