"""
JSON shapes the chat model is asked to return.

These blocks are pasted into prompts verbatim. The parsers in
``habla.responses`` enforce the same shapes on the way back.
"""

LESSON_SCHEMA = """
Format the lesson as JSON with this structure:
{
  "title": "short lesson title",
  "description": "one or two sentences about the lesson",
  "exercises": [
    {
      "type": "translation | fill-blank | multiple-choice | listening",
      "prompt": "what the learner sees",
      "correctAnswer": "expected answer",
      "options": ["only for multiple-choice"],
      "difficulty": 1-10,
      "topic": "topic of the exercise",
      "grammarFocus": ["grammar concepts practiced"]
    }
  ],
  "grammarConcepts": ["concepts covered"],
  "vocabulary": ["words introduced"]
}
"""

CONVERSATION_FEEDBACK_SCHEMA = """
Analyze the conversation and provide feedback in JSON format:
{
  "strengths": ["specific things they did well"],
  "improvements": ["gentle suggestions for improvement"],
  "nativePhrasings": [
    {
      "userSaid": "what the user said",
      "nativeSays": "how a native speaker would say it",
      "explanation": "brief explanation of the difference"
    }
  ],
  "overallScore": 0-100
}
"""

EXERCISE_FEEDBACK_SCHEMA = """
Provide feedback in JSON:
{
  "isCorrect": true or false,
  "feedback": "your feedback message",
  "explanation": "why the answer is right/wrong",
  "encouragement": "positive reinforcement",
  "grammarConcepts": ["concepts involved"]
}
"""

MEDIA_CONTENT_SCHEMA = """
Return JSON:
{
  "simplifiedContent": "version appropriate for user's level",
  "highlights": [
    {
      "phrase": "useful phrase or idiom",
      "translation": "English translation",
      "explanation": "why it's useful",
      "usefulness": 1-10
    }
  ],
  "culturalNotes": [
    {
      "term": "cultural term or reference",
      "explanation": "what it means",
      "context": "cultural background"
    }
  ],
  "followUpExercises": [
    {
      "type": "exercise type",
      "prompt": "exercise prompt",
      "correctAnswer": "answer"
    }
  ]
}
"""

VOCABULARY_SCHEMA = """
Return ONLY valid JSON with this exact structure:
{
  "cards": [
    {
      "word": "word in target language",
      "translation": "English translation",
      "example": "example sentence using the word",
      "difficulty": 1-10
    }
  ]
}
"""
