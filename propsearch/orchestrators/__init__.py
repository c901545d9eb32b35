# propsearch/orchestrators/__init__.py
