import html

import bleach

def sanitize_string(text):
    """Remove HTML tags and surrounding whitespace from free text

    Text outside the removed tags is kept as typed, so ``&`` and ``<``
    in prose survive instead of coming back as entities.
    """
    if text is None:
        return ''

    text = bleach.clean(str(text), tags=[], strip=True)
    return html.unescape(text).strip()

def sanitize_documents(documents):
    """Keep only the opaque reference fields of application documents"""
    cleaned = []
    for doc in documents or []:
        if not isinstance(doc, dict):
            continue
        cleaned.append({
            'document_type': sanitize_string(doc.get('document_type') or doc.get('documentType')),
            'document_url': str(doc.get('document_url') or doc.get('documentUrl') or '').strip(),
            'file_name': sanitize_string(doc.get('file_name') or doc.get('fileName')),
        })
    return [doc for doc in cleaned if doc['document_url']]

def sanitize_references(references):
    """Normalise applicant references to name/relationship/phone/email"""
    cleaned = []
    for ref in references or []:
        if not isinstance(ref, dict):
            continue
        name = sanitize_string(ref.get('name'))
        if not name:
            continue
        cleaned.append({
            'name': name,
            'relationship': sanitize_string(ref.get('relationship')),
            'phone': sanitize_string(ref.get('phone')),
            'email': sanitize_string(ref.get('email')) or None,
        })
    return cleaned
