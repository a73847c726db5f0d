"""Offers domain - Purchase offers and negotiation threads"""
