"""
Offline widget snapshots
Builds the same snapshot the in-page script returns, from static HTML
"""
from bs4 import BeautifulSoup
from typing import Any, Dict, List, Optional

from widgets.taxonomy import WidgetTaxonomy

PARENT_WALK_LIMIT = 25
CHILD_CLASS_LIMIT = 5
SNIPPET_LENGTH = 800


def _class_string(tag) -> str:
    if tag is None or not hasattr(tag, 'get'):
        return ''
    cls = tag.get('class')
    if not cls:
        return ''
    if isinstance(cls, (list, tuple)):
        return ' '.join(cls)
    return str(cls)


def _identifying_attr(tag, attributes) -> Optional[str]:
    if tag is None or not hasattr(tag, 'get'):
        return None
    for attr in attributes:
        value = tag.get(attr)
        if value:
            return value if isinstance(value, str) else ' '.join(value)
    return None


def build_snapshot(element, taxonomy: WidgetTaxonomy) -> Dict[str, Any]:
    """Snapshot of a BeautifulSoup Tag: {idAttr, allClasses, htmlSnippet, isAnchor}"""
    attributes = taxonomy.identifying_attributes
    query = ', '.join(f'[{attr}]' for attr in attributes)

    id_attr = None
    current = element
    depth = 0
    while current is not None and current.name not in ('body', '[document]') and depth < PARENT_WALK_LIMIT:
        id_attr = _identifying_attr(current, attributes)
        if id_attr:
            break
        current = current.parent
        depth += 1

    # Offline frames only expose inline documents
    if not id_attr and element.name == 'iframe' and element.get('srcdoc'):
        inner = BeautifulSoup(element['srcdoc'], 'html.parser').select_one(query)
        if inner is not None:
            id_attr = _identifying_attr(inner, attributes)

    if not id_attr:
        child = element.select_one(query)
        if child is not None:
            id_attr = _identifying_attr(child, attributes)

    children = [c for c in element.children if getattr(c, 'name', None)][:CHILD_CLASS_LIMIT]
    child_classes = ' '.join(_class_string(c) for c in children)
    all_classes = f"{_class_string(element.parent)} {_class_string(element)} {child_classes}".lower().strip()

    own_classes = _class_string(element).split()
    is_anchor = (
        element.select_one(', '.join(taxonomy.anchor_inner_selectors)) is not None
        or any(c in own_classes for c in taxonomy.anchor_classes)
    )

    return {
        'idAttr': id_attr,
        'allClasses': all_classes,
        'htmlSnippet': element.decode_contents().lower()[:SNIPPET_LENGTH],
        'isAnchor': is_anchor,
    }


def find_candidates(html: str, taxonomy: Optional[WidgetTaxonomy] = None) -> List[Any]:
    """All elements matching the known widget selectors, in document order"""
    taxonomy = taxonomy or WidgetTaxonomy.default()
    soup = BeautifulSoup(html, 'html.parser')
    return soup.select(taxonomy.selector_string)


def snapshot_from_html(html: str, selector: Optional[str] = None,
                       taxonomy: Optional[WidgetTaxonomy] = None) -> Optional[Dict[str, Any]]:
    """Snapshot the element matching ``selector`` (or the first widget candidate)"""
    taxonomy = taxonomy or WidgetTaxonomy.default()
    soup = BeautifulSoup(html, 'html.parser')

    if selector:
        element = soup.select_one(selector)
    else:
        matches = soup.select(taxonomy.selector_string)
        element = matches[0] if matches else None

    if element is None:
        return None
    return build_snapshot(element, taxonomy)
