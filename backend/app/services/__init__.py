# Services package init
"""
School Directory Backend: Services Layer
=========================================

Service Inventory:
    - SchoolService: repository for School records (validation, uniqueness)
    - FileService: school image upload validation, storage and cleanup
    - LLMService (abstract): interface for AI description providers
    - GeminiService: Google Gemini implementation of LLMService

Services take their collaborators explicitly (SchoolService receives the
session factory) so they can be tested without HTTP or a production database.
"""
