# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Suite for the Storyflow engine

Structure:
- core/: Configuration and logging
- llm/: Provider adapters, credentials and the provider manager
- workflow/: Models, resolver, context, handlers and the executor
"""
