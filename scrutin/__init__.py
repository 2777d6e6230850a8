"""Noyau cryptographique de scrutin vérifiable à seuil : cérémonie des clés, chiffrement, dépouillement"""
