# propsearch/core/extract/__init__.py
