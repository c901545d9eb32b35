# propsearch/core/intent/__init__.py
