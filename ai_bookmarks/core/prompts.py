from typing import Sequence

from google.genai import types

from ..config import constants


SYSTEM_INSTRUCTION_TEMPLATE = """
Actua com un expert curador de contingut d'Intel·ligència Artificial (IA).
La teva tasca és analitzar una llista de tuits.

Per a cada tuit:
1. Determina si el contingut està relacionat estrictament amb la Intel·ligència Artificial (IA), Machine Learning, LLMs, Data Science, etc.
2. Si NO és relacionat amb IA, marca 'isAI' com a false i no generis cap altre camp.
3. Si ÉS relacionat amb IA:
   - Marca 'isAI' com a true.
   - Genera un 'title' curt i descriptiu en CATALÀ (màxim 80 caràcters).
   - Genera una 'description' (resum) d'1 o 2 frases en CATALÀ explicant el valor del recurs o notícia.
   - Assigna una o més 'categories' de la següent llista: [{categories}]. Si no encaixa bé, fes servir '{default_category}'.
   - Extreu enllaços externs rellevants ('externalLinks') que apareguin al text o metadades, excloent enllaços a {excluded_domains}.
4. Retorna sempre 'originalId' amb l'identificador del tuit analitzat.
"""


def build_system_instruction(categories: Sequence[str]) -> str:
    """Render the system instruction for the given category vocabulary"""
    return SYSTEM_INSTRUCTION_TEMPLATE.format(
        categories=', '.join(categories),
        default_category=constants.UNCATEGORIZED,
        excluded_domains=' o '.join(constants.SOURCE_PLATFORM_DOMAINS),
    )


# Declared response shape. Gemini treats it as a strong hint only, so the
# sanitizer still repairs whatever comes back.
RESPONSE_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            'originalId': types.Schema(
                type=types.Type.STRING,
                description='The ID of the processed tweet',
            ),
            'isAI': types.Schema(
                type=types.Type.BOOLEAN,
                description='Is this tweet related to Artificial Intelligence?',
            ),
            'title': types.Schema(
                type=types.Type.STRING,
                description='A VERY short descriptive title in Catalan (max 80 characters, 10 words)',
            ),
            'description': types.Schema(
                type=types.Type.STRING,
                description='A summary of the content in Catalan',
            ),
            'categories': types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.STRING),
                description='Assigned categories. A tweet can belong to several categories.',
            ),
            'externalLinks': types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.STRING),
                description='List of relevant external URLs found',
            ),
        },
        required=['originalId', 'isAI'],
    ),
)
