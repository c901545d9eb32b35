# propsearch/core/query/__init__.py
