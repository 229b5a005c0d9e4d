"""
Open-data catalog discovery: client, extraction, crawl orchestration, storage.
"""
