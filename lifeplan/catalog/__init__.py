"""
Question catalogs.

Each catalog defines:
- name: Catalog identifier
- questions: list of {id, module_id, module_title, order, required, prompt, insight?, hints?}
"""
