"""Deterministic placeholder lessons used when no AI provider can answer."""

from __future__ import annotations

EASTER_EGG_LESSON = """// 🎮 KONAMI CODE EASTER EGG 🎮
// ↑ ↑ ↓ ↓ ← → ← → B A

type KeyCode = 'ArrowUp' | 'ArrowDown' | 'ArrowLeft' | 'ArrowRight' | 'KeyB' | 'KeyA';

class KonamiCodeDetector {
  private sequence: KeyCode[] = [
    'ArrowUp', 'ArrowUp', 'ArrowDown', 'ArrowDown',
    'ArrowLeft', 'ArrowRight', 'ArrowLeft', 'ArrowRight',
    'KeyB', 'KeyA'
  ];
  private currentIndex: number = 0;

  constructor() {
    this.setupListener();
  }

  private setupListener(): void {
    document.addEventListener('keydown', (e: KeyboardEvent) => {
      if (e.code === this.sequence[this.currentIndex]) {
        this.currentIndex++;
        if (this.currentIndex === this.sequence.length) {
          this.activate();
          this.currentIndex = 0;
        }
      } else {
        this.currentIndex = 0;
      }
    });
  }

  private activate(): void {
    console.log('🎮 KONAMI CODE ACTIVATED! 🎮');
    this.godMode();
    this.extraLives();
    this.unlockSecrets();
  }

  private godMode(): void {
    console.log('⚡ GOD MODE ENABLED ⚡');
    document.body.style.filter = 'hue-rotate(180deg)';
  }

  private extraLives(): void {
    console.log('❤️ +30 LIVES! ❤️');
  }

  private unlockSecrets(): void {
    console.log('🔓 ALL SECRETS UNLOCKED! 🔓');
  }
}

// Initialize the detector
const konami = new KonamiCodeDetector();
console.log('Try the Konami Code: ↑ ↑ ↓ ↓ ← → ← → B A');"""

# The outline is spliced in between header and body (no str.format: the
# TypeScript body is full of braces).
QUIZ_LESSON_HEADER = """// TypeScript Educational Module
// Topic: """

QUIZ_LESSON_BODY = """

interface Question {
  id: number;
  question: string;
  options: string[];
  correctAnswer: number;
  explanation: string;
}

class Quiz {
  private questions: Question[] = [
    {
      id: 1,
      question: "What is TypeScript?",
      options: [
        "A JavaScript library",
        "A superset of JavaScript",
        "A backend framework",
        "A database"
      ],
      correctAnswer: 1,
      explanation: "TypeScript is a superset of JavaScript that adds static typing."
    },
    {
      id: 2,
      question: "What does the 'interface' keyword do?",
      options: [
        "Creates a class",
        "Defines a type structure",
        "Imports a module",
        "Exports a function"
      ],
      correctAnswer: 1,
      explanation: "Interfaces define the structure of objects in TypeScript."
    },
    {
      id: 3,
      question: "What is the purpose of generics?",
      options: [
        "To make code faster",
        "To create reusable components",
        "To compress code",
        "To add colors"
      ],
      correctAnswer: 1,
      explanation: "Generics allow creating reusable components that work with multiple types."
    }
  ];

  checkAnswer(questionId: number, answer: number): boolean {
    const question = this.questions.find(q => q.id === questionId);
    return question ? question.correctAnswer === answer : false;
  }

  getExplanation(questionId: number): string {
    const question = this.questions.find(q => q.id === questionId);
    return question ? question.explanation : "Question not found";
  }

  getAllQuestions(): Question[] {
    return this.questions;
  }
}

// Example usage:
const quiz = new Quiz();
console.log("Quiz loaded with", quiz.getAllQuestions().length, "questions");

export { Quiz, Question };"""


def generate_mock_lesson(outline: str, is_easter_egg: bool) -> str:
    """Return placeholder lesson content. Pure; never fails."""
    if is_easter_egg:
        return EASTER_EGG_LESSON
    return QUIZ_LESSON_HEADER + outline + QUIZ_LESSON_BODY
