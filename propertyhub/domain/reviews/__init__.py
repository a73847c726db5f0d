"""Reviews domain - Property reviews and moderation"""
